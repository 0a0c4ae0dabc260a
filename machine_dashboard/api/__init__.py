"""
看板 REST API
"""
