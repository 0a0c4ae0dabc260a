"""
Machine Dashboard - 机台运行数据看板服务

负责：
- 按需或定时拉取后端机台数据
- 规范化原始记录并计算汇总统计
- 多维筛选（设备、班次、款式、状态）
- 提供 REST API 给前端
"""

__version__ = "1.0.0"
