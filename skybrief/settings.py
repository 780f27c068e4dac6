# skybrief/settings.py
from __future__ import annotations
from typing import List
from pydantic import BaseModel, Field

class Upstream(BaseModel):
    base_url: str = "https://aviationweather.gov/api/data"
    user_agent: str = "SkyBrief/1.0"
    timeout_sec: float = 10.0
    hazard_timeout_sec: float = 15.0
    dedup_window_sec: float = 5.0
    max_retries: int = 3
    backoff_base_sec: float = 1.0
    backoff_jitter_sec: float = 1.0
    observation_rate_limit_backoff_sec: float = 1.0
    hazard_rate_limit_backoff_sec: float = 1.5
    pool_size: int = 3
    chunk_size: int = 20

class CacheConfig(BaseModel):
    default_ttl_sec: float = 480.0
    hazard_ttl_sec: float = 300.0
    empty_ttl_sec: float = 300.0

class RegionPolicy(BaseModel):
    buffer_deg: float = 1.5
    corridor_width_nm: float = 100.0
    corridor_sample_nm: float = 20.0
    line_hazard_buffer_km: float = 10.0

class FilterPolicy(BaseModel):
    corridor_enabled: bool = True
    # 코리더 필터가 남긴 비율이 이 값 미만이면 박스 결과로 되돌림
    corridor_min_retention: float = 0.10
    # 박스 필터를 건너뛰는 위험기상 종류 (넓은 커버리지 유지)
    box_filter_exempt_kinds: List[str] = Field(default_factory=lambda: ["ISIGMET"])
    pirep_max_age_hours: float = 3.0

class Observability(BaseModel):
    metrics_enabled: bool = True
    metrics_port: int = 8099
    service_name: str = "SkyBrief"
    build_version: str = "0.1.0"
    log_level: str = "INFO"
    log_json: bool = False

class Settings(BaseModel):
    # 하위 섹션 (기본값/팩토리로 누락 방지)
    upstream: Upstream = Field(default_factory=Upstream)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    regions: RegionPolicy = Field(default_factory=RegionPolicy)
    filtering: FilterPolicy = Field(default_factory=FilterPolicy)
    observability: Observability = Field(default_factory=Observability)
