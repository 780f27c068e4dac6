# skybrief/main.py
import os, sys, asyncio
from typing import List, Optional
from prometheus_client import start_http_server
from skybrief.settings import Settings
from skybrief.observability.logging_setup import configure_logging, get_logger
from skybrief.common.errors import BriefingError
from skybrief.common.retry import BackoffPolicy
from skybrief.adapters.cache import TTLCache
from skybrief.adapters.awc.client import AWCClient
from skybrief.adapters.awc.fetchers import AWCWeatherSource
from skybrief.orchestrators.briefing import BriefingOrchestrator

def _b(name, default=False): return os.getenv(name, str(default)).lower() in ("1","true","yes","on")

def _exempt(kind: str, filtered: bool, kinds: List[str]) -> List[str]:
    kinds = [k for k in kinds if k != kind]
    return kinds if filtered else kinds + [kind]

def build_settings() -> Settings:
    s = Settings()

    # 업스트림
    s.upstream.base_url = os.getenv("AWC_BASE_URL", s.upstream.base_url)
    s.upstream.user_agent = os.getenv("AWC_USER_AGENT", s.upstream.user_agent)
    if os.getenv("AWC_TIMEOUT_MS"):
        s.upstream.timeout_sec = int(os.environ["AWC_TIMEOUT_MS"]) / 1000
    s.upstream.pool_size = int(os.getenv("AWC_POOL_SIZE", s.upstream.pool_size))
    s.upstream.chunk_size = int(os.getenv("AWC_CHUNK_SIZE", s.upstream.chunk_size))

    # 캐시
    if os.getenv("CACHE_TTL_MINUTES"):
        s.cache.default_ttl_sec = float(os.environ["CACHE_TTL_MINUTES"]) * 60
    s.cache.hazard_ttl_sec = float(os.getenv("ISIGMET_CACHE_TTL_SECONDS", s.cache.hazard_ttl_sec))

    # 영역
    s.regions.buffer_deg = float(os.getenv("BBOX_BUFFER_DEG", s.regions.buffer_deg))
    s.regions.corridor_width_nm = float(os.getenv("CORRIDOR_WIDTH_NM", s.regions.corridor_width_nm))
    s.regions.corridor_sample_nm = float(os.getenv("CORRIDOR_SAMPLE_NM", s.regions.corridor_sample_nm))

    # 필터
    s.filtering.corridor_enabled = _b("CORRIDOR_ENABLED", s.filtering.corridor_enabled)
    s.filtering.corridor_min_retention = float(os.getenv("CORRIDOR_MIN_RETENTION", s.filtering.corridor_min_retention))
    kinds = s.filtering.box_filter_exempt_kinds
    # SIGMET 은 기본적으로 박스 필터 적용 (FILTER_SIGMETS_BY_BBOX=false 일 때만 제외)
    # ISIGMET 은 기본적으로 제외 (FILTER_ISIGMETS_BY_BBOX=true 일 때만 적용)
    if os.getenv("FILTER_SIGMETS_BY_BBOX"):
        kinds = _exempt("SIGMET", _b("FILTER_SIGMETS_BY_BBOX"), kinds)
    if os.getenv("FILTER_ISIGMETS_BY_BBOX"):
        kinds = _exempt("ISIGMET", _b("FILTER_ISIGMETS_BY_BBOX"), kinds)
    s.filtering.box_filter_exempt_kinds = kinds

    # 관측성
    s.observability.log_level = os.getenv("LOG_LEVEL", s.observability.log_level)
    s.observability.log_json = _b("LOG_JSON", s.observability.log_json)
    s.observability.metrics_enabled = _b("METRICS_ENABLED", s.observability.metrics_enabled)
    s.observability.metrics_port = int(os.getenv("METRICS_PORT", s.observability.metrics_port))

    return s

def create_client(s: Settings) -> AWCClient:
    return AWCClient(
        s.upstream.base_url,
        user_agent=s.upstream.user_agent,
        timeout_sec=s.upstream.timeout_sec,
        dedup_window_sec=s.upstream.dedup_window_sec,
        retry_policy=BackoffPolicy(
            max_retries=s.upstream.max_retries,
            base_delay=s.upstream.backoff_base_sec,
            jitter=s.upstream.backoff_jitter_sec,
        ),
    )

def create_orchestrator(s: Settings, client: AWCClient, cache: Optional[TTLCache] = None) -> BriefingOrchestrator:
    cache = cache or TTLCache(default_ttl_sec=s.cache.default_ttl_sec)
    source = AWCWeatherSource(
        client,
        cache,
        chunk_size=s.upstream.chunk_size,
        pool_size=s.upstream.pool_size,
        observation_rate_limit=BackoffPolicy(
            max_retries=1, base_delay=s.upstream.observation_rate_limit_backoff_sec, jitter=0, exponential=False),
        hazard_rate_limit=BackoffPolicy(
            max_retries=1, base_delay=s.upstream.hazard_rate_limit_backoff_sec, jitter=0, exponential=False),
        hazard_ttl_sec=s.cache.hazard_ttl_sec,
        empty_ttl_sec=s.cache.empty_ttl_sec,
        hazard_timeout_sec=s.upstream.hazard_timeout_sec,
        line_hazard_buffer_km=s.regions.line_hazard_buffer_km,
    )
    return BriefingOrchestrator(
        source,
        buffer_deg=s.regions.buffer_deg,
        corridor_enabled=s.filtering.corridor_enabled,
        corridor_width_nm=s.regions.corridor_width_nm,
        corridor_sample_nm=s.regions.corridor_sample_nm,
        corridor_min_retention=s.filtering.corridor_min_retention,
        box_filter_exempt_kinds=s.filtering.box_filter_exempt_kinds,
        pirep_max_age_hours=s.filtering.pirep_max_age_hours,
    )

async def main(argv: Optional[List[str]] = None) -> int:
    s = build_settings()
    configure_logging(s.observability.log_level, json=s.observability.log_json)
    log = get_logger()
    log.info("설정 로드 완료")

    route = " ".join(argv if argv is not None else sys.argv[1:]) or os.getenv("ROUTE", "")
    if s.observability.metrics_enabled:
        start_http_server(s.observability.metrics_port)
        log.info(f"메트릭 서버 시작됨 port:{s.observability.metrics_port}")

    async with create_client(s) as client:
        orch = create_orchestrator(s, client)
        try:
            briefing = await orch.brief(route)
        except BriefingError as e:
            log.error(f"브리핑 실패 error:{e}")
            return 1
    print(briefing.model_dump_json(indent=2))
    return 0

def run() -> None:
    sys.exit(asyncio.run(main()))

if __name__ == "__main__":
    run()
