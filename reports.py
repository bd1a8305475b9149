"""Typed views of the four performance report shapes.

``classify_report`` looks at the raw document and picks a ``ReportKind``;
``parse_report`` validates the document against the pydantic model of each
matching kind, so importers only ever see typed records. Field names mirror
the camelCase keys of the report JSON.
"""
import enum
from datetime import datetime, timezone
from typing import Annotated, Any, Dict, List, Optional, Tuple, Union

from pydantic import AfterValidator, BaseModel, ConfigDict, ValidationError

# values a report may carry as a number or as a display string ("98.5%")
Formatted = Union[float, str, None]


def _to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


# stored as naive UTC so rows from reports written in different zones sort correctly
UtcDatetime = Annotated[datetime, AfterValidator(_to_naive_utc)]


class ReportKind(str, enum.Enum):
    CORE_WEB_VITALS = "Core Web Vitals"
    LOAD_TEST = "Load Testing"
    STRESS_TEST = "Stress Testing"
    SCHEMA_IMPACT = "Schema.org Impact Analysis"
    UNKNOWN = "Unknown"


class ReportValidationError(ValueError):
    """A report matched a kind but is missing fields that kind requires."""

    def __init__(self, kind: ReportKind, errors: ValidationError):
        self.kind = kind
        self.errors = errors
        super().__init__(f"invalid {kind.value} report: {errors}")


class ReportModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class Recommendation(ReportModel):
    category: str
    priority: str
    issue: str
    impact: Optional[str] = None
    solutions: Optional[List[Any]] = None


class RunReport(ReportModel):
    """Fields every report may carry at the top level."""

    testSuite: Optional[str] = None
    version: Optional[str] = None
    timestamp: UtcDatetime
    overallScore: Optional[float] = None
    agent: Optional[str] = None
    environment: Optional[str] = None
    description: Optional[str] = None


# Core Web Vitals


class CwvTestConfig(ReportModel):
    url: str


class CwvMetric(ReportModel):
    average: Optional[float] = None
    median: Optional[float] = None
    p75: Optional[float] = None
    p95: Optional[float] = None
    p99: Optional[float] = None
    min: Optional[float] = None
    max: Optional[float] = None
    passingThreshold: Optional[float] = None
    needsImprovementThreshold: Optional[float] = None
    score: Optional[float] = None
    rating: Optional[str] = None
    sampleSize: Optional[float] = None


class PagePerformanceMetrics(ReportModel):
    domContentLoaded: Optional[float] = None
    loadComplete: Optional[float] = None
    firstContentfulPaint: Optional[float] = None
    timeToInteractive: Optional[float] = None
    totalBytes: Optional[float] = None
    domNodes: Optional[float] = None
    ttfb: Optional[float] = None
    tbt: Optional[float] = None
    speedIndex: Optional[float] = None


class CwvIteration(ReportModel):
    iteration: int
    timestamp: UtcDatetime
    lcp: Optional[float] = None
    fid: Optional[float] = None
    cls: Optional[float] = None
    performanceMetrics: Optional[PagePerformanceMetrics] = None
    errors: Optional[List[Any]] = None


class CoreWebVitalsReport(RunReport):
    status: str
    testConfig: CwvTestConfig
    coreWebVitals: Dict[str, CwvMetric]
    rawData: Optional[List[CwvIteration]] = None


# Load testing


class LoadTestConfiguration(ReportModel):
    targetUrl: str
    maxConcurrentUsers: Optional[float] = None
    rampUpDuration: Optional[float] = None
    testDuration: Optional[float] = None
    actualDuration: Optional[float] = None
    requestDelay: Optional[float] = None


class RequestStatistics(ReportModel):
    total: float
    successful: float
    failed: float
    successRate: Formatted = None
    errorRate: Formatted = None


class LoadPerformanceMetrics(ReportModel):
    averageResponseTime: Optional[float] = None
    medianResponseTime: Optional[float] = None
    p95ResponseTime: Optional[float] = None
    p99ResponseTime: Optional[float] = None
    minResponseTime: Optional[float] = None
    maxResponseTime: Optional[float] = None
    requestsPerSecond: Optional[float] = None
    peakRPS: Optional[float] = None


class TimeSlice(ReportModel):
    startTime: UtcDatetime
    duration: float
    requests: Optional[float] = None
    successfulRequests: Optional[float] = None
    failedRequests: Optional[float] = None
    averageResponseTime: Optional[float] = None
    requestsPerSecond: Optional[float] = None


class LoadPatterns(ReportModel):
    timeSlices: Optional[List[TimeSlice]] = None


class TimelinePoint(ReportModel):
    timestamp: int  # epoch ms
    activeUsers: Optional[float] = None
    totalRequests: Optional[float] = None
    totalErrors: Optional[float] = None
    requestsPerSecond: Optional[float] = None


class ErrorAnalysis(ReportModel):
    totalErrors: Optional[float] = None
    errorRate: Formatted = None
    mostCommonError: Optional[str] = None
    errorsByType: Optional[Dict[str, float]] = None
    errorsByStatusCode: Optional[Dict[str, float]] = None


class LoadTestReport(RunReport):
    status: str
    testConfiguration: LoadTestConfiguration
    requestStatistics: RequestStatistics
    performanceMetrics: LoadPerformanceMetrics
    loadPatterns: Optional[LoadPatterns] = None
    timeline: Optional[List[TimelinePoint]] = None
    errorAnalysis: Optional[ErrorAnalysis] = None
    recommendations: Optional[List[Recommendation]] = None


# Stress testing


class StressTestConfiguration(ReportModel):
    targetUrl: str
    initialUsers: Optional[float] = None
    maxUsers: Optional[float] = None
    stepSize: Optional[float] = None
    stepDuration: Optional[float] = None
    totalSteps: Optional[float] = None
    requestInterval: Optional[float] = None


class BreakingPoint(ReportModel):
    users: Optional[float] = None
    step: Optional[float] = None
    reason: Optional[str] = None


class LastSuccessfulLoad(ReportModel):
    step: Optional[float] = None
    users: Optional[float] = None
    errorRate: Formatted = None
    avgResponseTime: Optional[float] = None
    requestsPerSecond: Optional[float] = None


class StepResult(ReportModel):
    step: int
    users: float
    errorRate: Formatted = None
    avgResponseTime: Optional[float] = None
    throughput: Optional[float] = None
    totalRequests: Optional[float] = None
    successfulRequests: Optional[float] = None
    failedRequests: Optional[float] = None


class SystemLimits(ReportModel):
    maxThroughput: Optional[float] = None
    maxConcurrentUsers: Optional[float] = None
    recommendedCapacity: Optional[float] = None
    scalingFactor: Optional[float] = None


class StressTestReport(RunReport):
    status: str
    testConfiguration: StressTestConfiguration
    breakingPoint: Optional[BreakingPoint] = None
    lastSuccessfulLoad: Optional[LastSuccessfulLoad] = None
    stepResults: Optional[List[StepResult]] = None
    systemLimits: Optional[SystemLimits] = None
    recommendations: Optional[List[Recommendation]] = None


# Schema.org impact analysis

# confidence figures show up both as numbers and as labels
Confidence = Union[float, str, None]


class ImpactSummary(ReportModel):
    totalTests: Optional[float] = None
    seoScore: Optional[float] = None
    llmScore: Optional[float] = None
    performanceScore: Optional[float] = None
    overallScore: Optional[float] = None


class ScoredMetric(ReportModel):
    score: Optional[float] = None
    maxScore: Optional[float] = None
    details: Any = None


class OrganicTraffic(ReportModel):
    currentMonthlyTraffic: Optional[float] = None
    projectedIncrease: Formatted = None
    additionalMonthlyVisitors: Optional[float] = None
    annualizedValue: Formatted = None
    confidence: Confidence = None


class ClickThroughRate(ReportModel):
    currentCTR: Formatted = None
    projectedCTR: Formatted = None
    improvement: Formatted = None
    additionalClicks: Optional[float] = None
    confidence: Confidence = None


class VoiceSearchCapture(ReportModel):
    monthlyVoiceSearches: Optional[float] = None
    estimatedCaptureRate: Formatted = None
    additionalVoiceTraffic: Optional[float] = None
    yearlyValue: Formatted = None
    confidence: Confidence = None


class BrandAuthority(ReportModel):
    knowledgeGraphLikelihood: Optional[str] = None
    trustSignalScore: Formatted = None
    competitiveAdvantage: Optional[str] = None
    brandRecognitionLift: Formatted = None
    marketPositioning: Optional[str] = None
    confidence: Confidence = None


class BusinessImpact(ReportModel):
    organicTraffic: OrganicTraffic
    clickThroughRate: ClickThroughRate
    voiceSearchCapture: VoiceSearchCapture
    brandAuthority: BrandAuthority


class DetailedResults(ReportModel):
    seo: Dict[str, ScoredMetric]
    llm: Dict[str, ScoredMetric]
    performance: Dict[str, ScoredMetric]
    businessImpact: BusinessImpact


class SchemaImpactReport(RunReport):
    website: str
    summary: ImpactSummary
    detailedResults: DetailedResults


Report = Union[CoreWebVitalsReport, LoadTestReport, StressTestReport, SchemaImpactReport]

REPORT_MODELS = {
    ReportKind.CORE_WEB_VITALS: CoreWebVitalsReport,
    ReportKind.LOAD_TEST: LoadTestReport,
    ReportKind.STRESS_TEST: StressTestReport,
    ReportKind.SCHEMA_IMPACT: SchemaImpactReport,
}


def _truthy(value) -> bool:
    """JSON truthiness as report producers see it: empty objects and arrays count.

    ``None``, ``false``, zero, NaN and the empty string do not.
    """
    if isinstance(value, (dict, list)):
        return True
    return bool(value) and value == value


def _present(document: dict, key: str) -> bool:
    return _truthy(document.get(key))


def _has_target_url(document: dict) -> bool:
    config = document.get("testConfiguration")
    return isinstance(config, dict) and _truthy(config.get("targetUrl"))


# checked in this order; a stress report also carries testConfiguration.targetUrl
_RULES = (
    (ReportKind.CORE_WEB_VITALS, lambda doc: _present(doc, "coreWebVitals")),
    (ReportKind.LOAD_TEST, _has_target_url),
    (ReportKind.STRESS_TEST, lambda doc: _present(doc, "breakingPoint")),
    (ReportKind.SCHEMA_IMPACT, lambda doc: _present(doc, "detailedResults")),
)


def matching_kinds(document: Any) -> List[ReportKind]:
    """Every kind whose rule matches ``document``, highest priority first.

    A kind matches when ``testSuite`` carries its label or the document has
    the field that kind is recognised by.
    """
    if not isinstance(document, dict):
        return []

    suite = document.get("testSuite")
    return [
        kind
        for kind, has_marker in _RULES
        if suite == kind.value or has_marker(document)
    ]


def classify_report(document: Any) -> ReportKind:
    kinds = matching_kinds(document)
    return kinds[0] if kinds else ReportKind.UNKNOWN


def parse_report(document: Any) -> Tuple[ReportKind, Optional[Report]]:
    """Decode ``document`` into the typed report for its kind.

    Matching kinds are tried in priority order and the first one whose model
    validates wins. When none validates, the error for the highest-priority
    match is raised as ``ReportValidationError``.
    """
    kinds = matching_kinds(document)
    if not kinds:
        return ReportKind.UNKNOWN, None

    first_error = None
    for kind in kinds:
        try:
            return kind, REPORT_MODELS[kind].model_validate(document)
        except ValidationError as e:
            if first_error is None:
                first_error = ReportValidationError(kind, e)
    raise first_error from first_error.errors
