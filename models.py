from sqlalchemy import BigInteger, Column, DateTime, Float, ForeignKey, Index, Integer, String, Text
from sqlalchemy.sql import func

from database import Base


def run_fk(unique: bool = False):
    return Column(
        Integer,
        ForeignKey("test_runs.id", ondelete="CASCADE"),
        nullable=False,
        unique=unique,
        index=not unique,
    )


class TestRun(Base):
    __tablename__ = "test_runs"
    __test__ = False  # keep pytest from collecting this as a test class
    __table_args__ = (
        Index("idx_test_runs_suite", "test_suite"),
        Index("idx_test_runs_status", "status"),
        Index("idx_test_runs_timestamp", "timestamp"),
        Index("idx_test_runs_url", "url"),
    )

    id = Column(Integer, primary_key=True)

    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    url = Column(String, nullable=True)
    identifier = Column(String, unique=True)

    test_suite = Column(String, nullable=False)
    version = Column(String, nullable=False, server_default="1.0.0")
    status = Column(String, nullable=False)

    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=True)
    timestamp = Column(DateTime, nullable=False)

    overall_score = Column(Integer, nullable=True)
    report_location = Column(String, nullable=True)

    agent = Column(String, nullable=True)
    environment = Column(String, nullable=True)

    created_at = Column(DateTime, server_default=func.current_timestamp())
    updated_at = Column(DateTime, server_default=func.current_timestamp())


# Core Web Vitals


class CoreWebVitalsMetric(Base):
    __tablename__ = "core_web_vitals"

    id = Column(Integer, primary_key=True)
    test_run_id = run_fk()

    metric_name = Column(String, nullable=False, index=True)
    metric_type = Column(String, nullable=False)

    average = Column(Float, nullable=True)
    median = Column(Float, nullable=True)
    p75 = Column(Float, nullable=True)
    p95 = Column(Float, nullable=True)
    p99 = Column(Float, nullable=True)
    min = Column(Float, nullable=True)
    max = Column(Float, nullable=True)

    passing_threshold = Column(Float, nullable=True)
    needs_improvement_threshold = Column(Float, nullable=True)

    score = Column(Integer, nullable=True)
    rating = Column(String, nullable=True)  # GOOD, NEEDS_IMPROVEMENT, POOR

    sample_size = Column(Integer, nullable=True)
    unit_code = Column(String, nullable=True)


class CwvIteration(Base):
    __tablename__ = "cwv_iterations"

    id = Column(Integer, primary_key=True)
    test_run_id = run_fk()

    iteration_number = Column(Integer, nullable=False)
    timestamp = Column(DateTime, nullable=False, index=True)

    lcp = Column(Float, nullable=True)
    fid = Column(Float, nullable=True)
    cls = Column(Float, nullable=True)

    dom_content_loaded = Column(Float, nullable=True)
    load_complete = Column(Float, nullable=True)
    first_contentful_paint = Column(Float, nullable=True)
    time_to_interactive = Column(Float, nullable=True)
    total_bytes = Column(Integer, nullable=True)
    dom_nodes = Column(Integer, nullable=True)

    ttfb = Column(Float, nullable=True)
    tbt = Column(Float, nullable=True)
    speed_index = Column(Float, nullable=True)

    #stored as a JSON array
    errors = Column(Text, nullable=True)


# Load testing


class LoadTestConfig(Base):
    __tablename__ = "load_test_config"

    id = Column(Integer, primary_key=True)
    test_run_id = run_fk(unique=True)

    target_url = Column(String, nullable=False)
    max_concurrent_users = Column(Integer, nullable=True)
    ramp_up_duration = Column(Integer, nullable=True)  # seconds
    test_duration = Column(Integer, nullable=True)  # seconds
    actual_duration = Column(Integer, nullable=True)
    request_delay = Column(Integer, nullable=True)  # ms


class LoadTestStats(Base):
    __tablename__ = "load_test_stats"

    id = Column(Integer, primary_key=True)
    test_run_id = run_fk(unique=True)

    total_requests = Column(Integer, nullable=False)
    successful_requests = Column(Integer, nullable=False)
    failed_requests = Column(Integer, nullable=False)

    success_rate = Column(Float, nullable=True)
    error_rate = Column(Float, nullable=True)

    avg_response_time = Column(Float, nullable=True)
    median_response_time = Column(Float, nullable=True)
    p95_response_time = Column(Float, nullable=True)
    p99_response_time = Column(Float, nullable=True)
    min_response_time = Column(Float, nullable=True)
    max_response_time = Column(Float, nullable=True)

    requests_per_second = Column(Float, nullable=True)
    peak_rps = Column(Float, nullable=True)


class LoadTestTimeSlice(Base):
    __tablename__ = "load_test_time_slices"

    id = Column(Integer, primary_key=True)
    test_run_id = run_fk()

    start_time = Column(DateTime, nullable=False, index=True)
    duration = Column(Integer, nullable=False)  # seconds

    requests = Column(Integer, nullable=True)
    successful_requests = Column(Integer, nullable=True)
    failed_requests = Column(Integer, nullable=True)
    avg_response_time = Column(Float, nullable=True)
    requests_per_second = Column(Float, nullable=True)


class LoadTestTimelinePoint(Base):
    __tablename__ = "load_test_timeline"

    id = Column(Integer, primary_key=True)
    test_run_id = run_fk()

    timestamp = Column(BigInteger, nullable=False, index=True)  # epoch ms
    active_users = Column(Integer, nullable=True)
    total_requests = Column(Integer, nullable=True)
    total_errors = Column(Integer, nullable=True)
    requests_per_second = Column(Float, nullable=True)


# Stress testing


class StressTestConfig(Base):
    __tablename__ = "stress_test_config"

    id = Column(Integer, primary_key=True)
    test_run_id = run_fk(unique=True)

    target_url = Column(String, nullable=False)
    initial_users = Column(Integer, nullable=True)
    max_users = Column(Integer, nullable=True)
    step_size = Column(Integer, nullable=True)
    step_duration = Column(Integer, nullable=True)  # seconds
    total_steps = Column(Integer, nullable=True)
    request_interval = Column(Integer, nullable=True)  # ms


class StressTestBreakingPoint(Base):
    __tablename__ = "stress_test_breaking_point"

    id = Column(Integer, primary_key=True)
    test_run_id = run_fk(unique=True)

    users = Column(Integer, nullable=True)
    step = Column(Integer, nullable=True)
    reason = Column(Text, nullable=True)


class StressTestLastSuccessful(Base):
    __tablename__ = "stress_test_last_successful"

    id = Column(Integer, primary_key=True)
    test_run_id = run_fk(unique=True)

    step = Column(Integer, nullable=True)
    users = Column(Integer, nullable=True)
    error_rate = Column(Float, nullable=True)
    avg_response_time = Column(Float, nullable=True)
    requests_per_second = Column(Float, nullable=True)


class StressTestStep(Base):
    __tablename__ = "stress_test_steps"

    id = Column(Integer, primary_key=True)
    test_run_id = run_fk()

    step_number = Column(Integer, nullable=False)
    users = Column(Integer, nullable=False)

    error_rate = Column(Float, nullable=True)
    avg_response_time = Column(Float, nullable=True)
    throughput = Column(Float, nullable=True)  # req/s

    total_requests = Column(Integer, nullable=True)
    successful_requests = Column(Integer, nullable=True)
    failed_requests = Column(Integer, nullable=True)


class StressTestLimits(Base):
    __tablename__ = "stress_test_limits"

    id = Column(Integer, primary_key=True)
    test_run_id = run_fk(unique=True)

    max_throughput = Column(Float, nullable=True)
    max_concurrent_users = Column(Integer, nullable=True)
    recommended_capacity = Column(Integer, nullable=True)
    scaling_factor = Column(Float, nullable=True)


# Soak and scalability testing. Nothing imports these yet.


class SoakTestConfig(Base):
    __tablename__ = "soak_test_config"

    id = Column(Integer, primary_key=True)
    test_run_id = run_fk(unique=True)

    target_url = Column(String, nullable=False)
    concurrent_users = Column(Integer, nullable=True)
    test_duration_hours = Column(Float, nullable=True)
    request_interval = Column(Integer, nullable=True)
    sampling_interval = Column(Integer, nullable=True)


class SoakTestSample(Base):
    __tablename__ = "soak_test_samples"

    id = Column(Integer, primary_key=True)
    test_run_id = run_fk()

    timestamp = Column(DateTime, nullable=False, index=True)
    elapsed_time = Column(Integer, nullable=True)  # seconds since start

    avg_response_time = Column(Float, nullable=True)
    error_rate = Column(Float, nullable=True)
    throughput = Column(Float, nullable=True)

    memory_usage = Column(Float, nullable=True)
    cpu_usage = Column(Float, nullable=True)

    total_requests = Column(Integer, nullable=True)
    successful_requests = Column(Integer, nullable=True)
    failed_requests = Column(Integer, nullable=True)


class ScalabilityTestConfig(Base):
    __tablename__ = "scalability_test_config"

    id = Column(Integer, primary_key=True)
    test_run_id = run_fk(unique=True)

    target_url = Column(String, nullable=False)
    test_duration = Column(Integer, nullable=True)  # seconds per scenario


class ScalabilityScenario(Base):
    __tablename__ = "scalability_scenarios"

    id = Column(Integer, primary_key=True)
    test_run_id = run_fk()

    scenario_id = Column(String, nullable=False, index=True)

    user_count = Column(Integer, nullable=True)
    data_load = Column(String, nullable=True)  # light, medium, heavy
    network_condition = Column(String, nullable=True)  # fast, slow, mobile

    avg_response_time = Column(Float, nullable=True)
    error_rate = Column(Float, nullable=True)
    throughput = Column(Float, nullable=True)
    p95_response_time = Column(Float, nullable=True)

    cpu_usage = Column(Float, nullable=True)
    memory_usage = Column(Float, nullable=True)


# Schema.org impact analysis


class SchemaImpactSummary(Base):
    __tablename__ = "schema_impact_summary"

    id = Column(Integer, primary_key=True)
    test_run_id = run_fk(unique=True)

    website = Column(String, nullable=False)
    total_tests = Column(Integer, nullable=True)

    seo_score = Column(Integer, nullable=True)
    llm_score = Column(Integer, nullable=True)
    performance_score = Column(Integer, nullable=True)
    overall_score = Column(Integer, nullable=True)


class SeoMetric(Base):
    __tablename__ = "schema_seo_metrics"

    id = Column(Integer, primary_key=True)
    test_run_id = run_fk()

    metric_name = Column(String, nullable=False)
    score = Column(Integer, nullable=True)
    max_score = Column(Integer, nullable=True)
    details = Column(Text, nullable=True)


class LlmMetric(Base):
    __tablename__ = "schema_llm_metrics"

    id = Column(Integer, primary_key=True)
    test_run_id = run_fk()

    metric_name = Column(String, nullable=False)
    score = Column(Integer, nullable=True)
    max_score = Column(Integer, nullable=True)
    details = Column(Text, nullable=True)


class PerformanceMetric(Base):
    __tablename__ = "schema_performance_metrics"

    id = Column(Integer, primary_key=True)
    test_run_id = run_fk()

    metric_name = Column(String, nullable=False)
    score = Column(Integer, nullable=True)
    max_score = Column(Integer, nullable=True)
    details = Column(Text, nullable=True)


class BusinessImpact(Base):
    __tablename__ = "schema_business_impact"

    id = Column(Integer, primary_key=True)
    test_run_id = run_fk(unique=True)

    # organic traffic
    current_monthly_traffic = Column(Integer, nullable=True)
    projected_traffic_increase = Column(Float, nullable=True)  # %
    additional_monthly_visitors = Column(Integer, nullable=True)
    annual_value = Column(Float, nullable=True)  # $
    traffic_confidence = Column(Integer, nullable=True)

    # click-through rate
    current_ctr = Column(Float, nullable=True)
    projected_ctr = Column(Float, nullable=True)
    ctr_improvement = Column(Float, nullable=True)
    additional_clicks = Column(Integer, nullable=True)
    ctr_confidence = Column(Integer, nullable=True)

    # voice search
    monthly_voice_searches = Column(Integer, nullable=True)
    voice_capture_rate = Column(Float, nullable=True)
    additional_voice_traffic = Column(Integer, nullable=True)
    yearly_voice_value = Column(Float, nullable=True)
    voice_confidence = Column(Integer, nullable=True)

    # brand authority
    knowledge_graph_likelihood = Column(String, nullable=True)
    trust_signal_score = Column(Float, nullable=True)  # 0-10
    competitive_advantage = Column(String, nullable=True)
    brand_recognition_lift = Column(Float, nullable=True)
    market_positioning = Column(String, nullable=True)
    brand_confidence = Column(Float, nullable=True)


# Error analysis


class ErrorAnalysis(Base):
    __tablename__ = "error_analysis"

    id = Column(Integer, primary_key=True)
    test_run_id = run_fk()

    total_errors = Column(Integer, nullable=True)
    error_rate = Column(Float, nullable=True)
    most_common_error = Column(Text, nullable=True)


class ErrorsByType(Base):
    __tablename__ = "errors_by_type"

    id = Column(Integer, primary_key=True)
    error_analysis_id = Column(
        Integer,
        ForeignKey("error_analysis.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    error_type = Column(String, nullable=False)
    error_message = Column(Text, nullable=True)
    count = Column(Integer, nullable=False)


class ErrorsByStatus(Base):
    __tablename__ = "errors_by_status"

    id = Column(Integer, primary_key=True)
    error_analysis_id = Column(
        Integer,
        ForeignKey("error_analysis.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    status_code = Column(String, nullable=False)
    count = Column(Integer, nullable=False)


class Recommendation(Base):
    __tablename__ = "recommendations"

    id = Column(Integer, primary_key=True)
    test_run_id = run_fk()

    category = Column(String, nullable=False)
    priority = Column(String, nullable=False, index=True)  # CRITICAL, HIGH, MEDIUM, LOW
    issue = Column(Text, nullable=False)
    impact = Column(Text, nullable=True)
    solutions = Column(Text, nullable=True)  # JSON array

    recommendation_order = Column(Integer, nullable=True)


class SchemaMetadata(Base):
    __tablename__ = "schema_metadata"

    key = Column(String, primary_key=True)
    value = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    updated_at = Column(DateTime, server_default=func.current_timestamp())


# children before parents, so DELETE never trips a foreign key
CLEAR_ORDER = (
    Recommendation,
    ErrorsByStatus,
    ErrorsByType,
    ErrorAnalysis,
    BusinessImpact,
    PerformanceMetric,
    LlmMetric,
    SeoMetric,
    SchemaImpactSummary,
    ScalabilityScenario,
    ScalabilityTestConfig,
    SoakTestSample,
    SoakTestConfig,
    StressTestLimits,
    StressTestStep,
    StressTestLastSuccessful,
    StressTestBreakingPoint,
    StressTestConfig,
    LoadTestTimelinePoint,
    LoadTestTimeSlice,
    LoadTestStats,
    LoadTestConfig,
    CwvIteration,
    CoreWebVitalsMetric,
    TestRun,
)
