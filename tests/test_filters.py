"""
单元测试：多维筛选

测试覆盖：
- 维度按 AND 组合，保持原始顺序
- 状态按规范化后的标签匹配
- 筛选框选项来自未筛选数据，与筛选条件无关
"""

import pytest
from pydantic import ValidationError

from machine_dashboard.filters import apply_filters, distinct_values, facet_options
from machine_dashboard.models import ALL, FilterSpec
from machine_dashboard.normalizer import normalize_all

from conftest import fixed_clock


def _records(*rows):
    return normalize_all(rows, clock=fixed_clock)


class TestApplyFilters:
    """筛选组合"""

    def setup_method(self):
        self.records = _records(
            {"device_id": "D1", "shift": "A", "count": 1},
            {"device_id": "D1", "shift": "B", "count": 2},
            {"device_id": "D2", "shift": "A", "count": 3},
        )

    def test_all_returns_everything(self):
        """测试：全部为 all 时不过滤"""
        assert apply_filters(self.records, FilterSpec()) == self.records

    def test_device_only(self):
        """测试：只按设备筛选，保持顺序"""
        result = apply_filters(self.records, FilterSpec(device="D1", shift=ALL))

        assert [r.count for r in result] == [1, 2]

    def test_device_and_shift(self):
        """测试：设备 + 班次"""
        result = apply_filters(self.records, FilterSpec(device="D1", shift="A"))

        assert [r.count for r in result] == [1]

    def test_no_match(self):
        assert apply_filters(self.records, FilterSpec(device="D3")) == ()

    def test_case_sensitive_shift(self):
        """测试：班次大小写敏感"""
        assert apply_filters(self.records, FilterSpec(shift="a")) == ()

    def test_status_matches_normalized_tag(self):
        """测试：原始状态大小写不同也能按 running 筛选"""
        records = _records(
            {"device_id": "D1", "status": "RUNNING"},
            {"device_id": "D2", "status": "Running"},
            {"device_id": "D3", "status": "idle"},
        )

        result = apply_filters(records, FilterSpec(status="running"))

        assert [r.device_id for r in result] == ["D1", "D2"]

    def test_raw_status_text_rejected(self):
        """测试：状态筛选只接受规范化后的标签"""
        with pytest.raises(ValidationError):
            FilterSpec(status="RUNNING")
        with pytest.raises(ValidationError):
            FilterSpec(status="unknown")

    def test_design_filter(self):
        records = _records({"design": "X1"}, {"design": "X2"}, {"design": "X1"})

        assert len(apply_filters(records, FilterSpec(design="X1"))) == 2


class TestFacets:
    """筛选框选项"""

    def test_distinct_values_order(self):
        records = _records({"shift": "B"}, {"shift": "A"}, {"shift": "B"}, {"shift": "C"})

        assert distinct_values(records, "shift") == ["B", "A", "C"]

    def test_status_filter_does_not_change_shift_options(self, raw_rows):
        """测试：修改状态筛选不影响班次选项"""
        records = normalize_all(raw_rows, clock=fixed_clock)

        before = facet_options(records).shifts
        apply_filters(records, FilterSpec(status="idle"))
        after = facet_options(records).shifts

        assert before == after == ["A", "B"]

    def test_facet_options(self, raw_rows):
        options = facet_options(normalize_all(raw_rows, clock=fixed_clock))

        assert options.devices == ["D1", "D2"]
        assert options.shifts == ["A", "B"]
        assert options.designs == ["X1", "X2"]
        assert options.statuses == ["all", "running", "idle", "stopped", "maintenance"]

    def test_empty_facets(self):
        options = facet_options(())

        assert options.devices == []
        assert options.statuses[0] == ALL


class TestFilterSpec:

    def test_replace_ignores_none(self):
        spec = FilterSpec(device="D1", shift="A")

        updated = spec.replace(device=None, shift="B")

        assert updated == FilterSpec(device="D1", shift="B")
        assert spec.shift == "A"
