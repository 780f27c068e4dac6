"""
영역 생성 모듈 단위 테스트

이 모듈은 경계 상자 계산, 날짜변경선 분할, 코리더 생성을 테스트합니다.
"""

import pytest
from skybrief.common.errors import CorridorConstructionError, InvalidInputError
from skybrief.common.geo import distance_nm, point_in_polygon
from skybrief.core.models import (
    BoundingBox, BoxSegment, LineStringGeometry, MultiLineStringGeometry,
    MultiPolygonGeometry, PointGeometry, PolygonGeometry, Waypoint
)
from skybrief.core.regions import (
    box_area, buffer_lines, build_corridor, compute_bounding_box, format_bbox,
    parse_bbox, resample_route, split_at_antimeridian
)


class TestComputeBoundingBox:
    """경계 상자 계산 테스트"""

    def test_klax_kphx_box(self, klax_kphx):
        """KLAX-KPHX 경계 상자 테스트"""
        box = compute_bounding_box(klax_kphx, buffer_deg=1.5)

        assert box.min_lon == pytest.approx(-119.9)
        assert box.min_lat == pytest.approx(31.9)
        assert box.max_lon == pytest.approx(-110.5)
        assert box.max_lat == pytest.approx(35.5)
        assert box.wraps is False

    def test_single_waypoint(self):
        """단일 지점 박스 테스트"""
        box = compute_bounding_box([Waypoint(lon=10, lat=20)], buffer_deg=1)
        assert (box.min_lon, box.min_lat, box.max_lon, box.max_lat) == (9, 19, 11, 21)

    def test_zero_buffer(self, klax_kphx):
        """버퍼 0 테스트"""
        box = compute_bounding_box(klax_kphx, buffer_deg=0)
        assert (box.min_lon, box.max_lon) == (-118.4, -112.0)

    def test_latitude_clamped_at_pole(self):
        """극 부근 위도 제한 테스트"""
        box = compute_bounding_box([Waypoint(lon=0, lat=89.5), Waypoint(lon=10, lat=-89.5)], buffer_deg=2)
        assert box.max_lat == 90.0
        assert box.min_lat == -90.0

    def test_dateline_crossing_box(self):
        """날짜변경선 횡단 박스 테스트"""
        waypoints = [Waypoint(lon=170, lat=0), Waypoint(lon=-170, lat=5)]
        box = compute_bounding_box(waypoints, buffer_deg=1.5)

        assert box.wraps is True
        assert box.min_lon == pytest.approx(168.5)
        assert box.max_lon == pytest.approx(-168.5)
        assert box.min_lat == pytest.approx(-1.5)
        assert box.max_lat == pytest.approx(6.5)

    def test_full_longitude_box(self):
        """경도 전체에 걸친 경로 테스트"""
        waypoints = [Waypoint(lon=-170, lat=0), Waypoint(lon=0, lat=0), Waypoint(lon=170, lat=0)]
        box = compute_bounding_box(waypoints, buffer_deg=1.5)
        assert (box.min_lon, box.max_lon) == (-180.0, 180.0)

    def test_empty_waypoints(self):
        """빈 경로 테스트"""
        with pytest.raises(InvalidInputError):
            compute_bounding_box([])

    def test_out_of_range_waypoint(self):
        """좌표 범위 오류 테스트"""
        with pytest.raises(InvalidInputError):
            compute_bounding_box([Waypoint(lon=0, lat=95)])

    def test_negative_buffer(self, klax_kphx):
        """음수 버퍼 테스트"""
        with pytest.raises(InvalidInputError):
            compute_bounding_box(klax_kphx, buffer_deg=-1)


class TestSplitAtAntimeridian:
    """날짜변경선 분할 테스트"""

    def test_non_wrapping_box(self):
        """넘지 않는 박스는 그대로 반환 테스트"""
        box = BoundingBox(min_lon=-119.9, min_lat=31.9, max_lon=-110.5, max_lat=35.5)
        segments = split_at_antimeridian(box)
        assert len(segments) == 1
        assert (segments[0].min_lon, segments[0].max_lon) == (-119.9, -110.5)

    def test_wrapping_box(self):
        """넘는 박스는 두 조각 테스트"""
        box = BoundingBox(min_lon=170, min_lat=-5, max_lon=-170, max_lat=5)
        east, west = split_at_antimeridian(box)

        assert (east.min_lon, east.max_lon) == (170, 180)
        assert (west.min_lon, west.max_lon) == (-180, -170)
        assert east.min_lat == west.min_lat == -5
        assert east.max_lat == west.max_lat == 5

    def test_segment_rejects_inverted_bounds(self):
        """역전된 박스 조각 거부 테스트"""
        with pytest.raises(ValueError):
            BoxSegment(min_lon=10, min_lat=0, max_lon=-10, max_lat=5)


class TestBboxFormatting:
    """bbox 문자열 테스트"""

    def test_format_bbox(self):
        """쿼리 문자열 형식 테스트"""
        segment = BoxSegment(min_lon=-118.4 - 1.5, min_lat=33.4 - 1.5, max_lon=-112.0 + 1.5, max_lat=34.0 + 1.5)
        assert format_bbox(segment) == "-119.9,31.9,-110.5,35.5"

    def test_format_bbox_integers(self):
        """정수 좌표 형식 테스트"""
        assert format_bbox(BoxSegment(min_lon=-180, min_lat=0, max_lon=-170, max_lat=5)) == "-180,0,-170,5"

    def test_parse_bbox(self):
        """bbox 문자열 해석 테스트"""
        box = parse_bbox("-119.9, 31.9, -110.5, 35.5")
        assert (box.min_lon, box.min_lat, box.max_lon, box.max_lat) == (-119.9, 31.9, -110.5, 35.5)

    @pytest.mark.parametrize("text", ["", "1,2,3", "a,b,c,d", "0,95,1,96", "0,10,1,5"])
    def test_parse_bbox_invalid(self, text):
        """잘못된 bbox 문자열 테스트"""
        with pytest.raises(InvalidInputError):
            parse_bbox(text)

    def test_box_area(self):
        """박스 면적 테스트"""
        assert box_area(BoxSegment(min_lon=0, min_lat=0, max_lon=10, max_lat=5)) == 50


class TestResampleRoute:
    """경로 재샘플링 테스트"""

    def test_endpoints_preserved(self):
        """시작점과 끝점 유지 테스트"""
        points = [(0.0, 0.0), (0.0, 1.0)]
        samples = resample_route(points, 20)
        assert samples[0] == (0.0, 0.0)
        assert samples[-1] == (0.0, 1.0)

    def test_sample_spacing(self):
        """샘플 간격 테스트"""
        points = [(-118.4, 34.0), (-115.0, 33.0), (-112.0, 33.4)]
        samples = resample_route(points, 20)
        for a, b in zip(samples, samples[1:]):
            assert distance_nm(a, b) <= 20.5

    def test_single_segment_sample_count(self, klax_kphx):
        """샘플 개수 테스트"""
        points = [(wp.lon, wp.lat) for wp in klax_kphx]
        total = distance_nm(points[0], points[1])
        samples = resample_route(points, 20)
        assert len(samples) >= int(total // 20) + 1


class TestBuildCorridor:
    """코리더 생성 테스트"""

    def test_corridor_contains_route(self, klax_kphx):
        """코리더가 경로를 포함하는지 테스트"""
        corridor = build_corridor(klax_kphx, width_nm=100, sample_nm=20)
        rings = corridor.polygon.coordinates

        assert corridor.kind == "corridor"
        assert corridor.sample_count >= 17
        for wp in klax_kphx:
            assert point_in_polygon(wp.lon, wp.lat, rings)
        # 경로 중간점
        assert point_in_polygon(-115.2, 33.7, rings)

    def test_corridor_width(self, klax_kphx):
        """코리더 폭 테스트"""
        corridor = build_corridor(klax_kphx, width_nm=100, sample_nm=20)
        rings = corridor.polygon.coordinates

        # 중간점에서 북쪽 50 해리는 내부, 150 해리는 외부
        assert point_in_polygon(-115.2, 33.7 + 50 / 60, rings)
        assert not point_in_polygon(-115.2, 33.7 + 150 / 60, rings)

    def test_narrow_corridor(self, klax_kphx):
        """좁은 코리더 테스트"""
        corridor = build_corridor(klax_kphx, width_nm=20, sample_nm=20)
        assert not point_in_polygon(-115.2, 35.3, corridor.polygon.coordinates)

    def test_single_waypoint(self):
        """지점 하나로는 코리더를 만들 수 없음"""
        with pytest.raises(CorridorConstructionError):
            build_corridor([Waypoint(lon=0, lat=0)])

    def test_identical_waypoints(self):
        """모든 지점이 같은 경우 테스트"""
        with pytest.raises(CorridorConstructionError):
            build_corridor([Waypoint(lon=1, lat=1), Waypoint(lon=1, lat=1)])

    def test_antimeridian_route(self):
        """날짜변경선 횡단 경로 테스트"""
        with pytest.raises(CorridorConstructionError):
            build_corridor([Waypoint(lon=179, lat=0), Waypoint(lon=-179, lat=0)])

    def test_buffer_reaching_antimeridian(self):
        """버퍼가 날짜변경선을 넘는 경로 테스트"""
        with pytest.raises(CorridorConstructionError):
            build_corridor([Waypoint(lon=178.5, lat=52.0), Waypoint(lon=179.6, lat=51.5)])

    def test_narrow_corridor_near_antimeridian(self):
        """날짜변경선 근처의 좁은 코리더 좌표 범위 테스트"""
        corridor = build_corridor([Waypoint(lon=178.0, lat=52.0), Waypoint(lon=179.0, lat=51.5)], width_nm=10)
        lons = [p[0] for p in corridor.polygon.coordinates[0]]
        assert max(lons) < 180.0
        assert min(lons) > 177.0

    def test_invalid_width(self, klax_kphx):
        """잘못된 폭 테스트"""
        with pytest.raises(InvalidInputError):
            build_corridor(klax_kphx, width_nm=0)


class TestBufferLines:
    """선 형상 버퍼링 테스트"""

    def test_buffer_linestring(self):
        """선 버퍼링 테스트"""
        polygon = buffer_lines(LineStringGeometry(coordinates=[[0, 0], [1, 0]]), 10)

        assert isinstance(polygon, PolygonGeometry)
        # 약 5.5km 는 내부, 약 22km 는 외부
        assert point_in_polygon(0.5, 0.05, polygon.coordinates)
        assert not point_in_polygon(0.5, 0.2, polygon.coordinates)

    def test_buffer_disjoint_lines(self):
        """떨어진 선들의 버퍼링 테스트"""
        geometry = MultiLineStringGeometry(coordinates=[[[0, 0], [1, 0]], [[10, 10], [11, 10]]])
        assert isinstance(buffer_lines(geometry, 10), MultiPolygonGeometry)

    def test_buffer_non_line(self):
        """선이 아닌 형상 테스트"""
        with pytest.raises(TypeError):
            buffer_lines(PointGeometry(coordinates=[0, 0]), 10)

    def test_buffer_without_usable_line(self):
        """좌표가 부족한 선 테스트"""
        with pytest.raises(CorridorConstructionError):
            buffer_lines(LineStringGeometry(coordinates=[[0, 0]]), 10)

    def test_buffer_clamped_to_longitude_range(self):
        """날짜변경선 근처 선 버퍼링의 경도 범위 테스트"""
        polygon = buffer_lines(LineStringGeometry(coordinates=[[179.9, 0], [179.95, 0]]), 20)

        lons = [p[0] for p in polygon.coordinates[0]]
        assert max(lons) == 180.0
        assert all(-180.0 <= lon <= 180.0 for lon in lons)
