"""Map typed performance reports onto the relational schema.

Every importer registers one ``test_runs`` row first and hangs its detail rows
off the returned id. Inserts are flushed in foreign-key order inside the
caller's transaction, so a parent row always exists before a child uses its
id. ``TestDataImporter`` drives single-file and directory imports, one
transaction per file.
"""
import json
import logging
import time
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from pydantic import BaseModel, Field
from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

import models
import ddl
from database import DEFAULT_DB_PATH, create_db_engine, make_session_factory
from parsing import parse_currency, parse_fraction_numerator, parse_percentage
from reports import (
    CoreWebVitalsReport,
    LoadTestReport,
    Recommendation,
    ReportKind,
    RunReport,
    SchemaImpactReport,
    StressTestReport,
    parse_report,
)

logger = logging.getLogger("performance_db.importer")

Clock = Callable[[], float]

DEFAULT_REPORT_VERSION = "1.0.0"

IDENTIFIER_PREFIXES = {
    ReportKind.CORE_WEB_VITALS: "cwv",
    ReportKind.LOAD_TEST: "load",
    ReportKind.STRESS_TEST: "stress",
    ReportKind.SCHEMA_IMPACT: "schema",
}


def make_identifier(kind: ReportKind, clock: Clock = time.time) -> str:
    return f"{IDENTIFIER_PREFIXES[kind]}-{int(clock() * 1000)}"


def _json_text(value) -> Optional[str]:
    if value is None or isinstance(value, str):
        return value
    return json.dumps(value)


def _add(session: Session, row):
    session.add(row)
    session.flush()
    return row


def register_run(
    session: Session,
    report: RunReport,
    *,
    kind: ReportKind,
    name: str,
    url: str,
    report_location: str,
    version: Optional[str] = None,
    status: Optional[str] = None,
    overall_score: Optional[float] = None,
    clock: Clock = time.time,
) -> int:
    """Insert the parent ``test_runs`` row and return its id.

    The identifier embeds the current epoch milliseconds, so two imports in
    the same millisecond collide on the unique constraint. That error is left
    to propagate.
    """
    run = _add(
        session,
        models.TestRun(
            name=name,
            description=report.description,
            url=url,
            identifier=make_identifier(kind, clock),
            test_suite=kind.value,
            version=version or report.version or DEFAULT_REPORT_VERSION,
            status=status or report.status,
            start_time=report.timestamp,
            end_time=report.timestamp,
            timestamp=report.timestamp,
            overall_score=overall_score,
            report_location=report_location,
            agent=report.agent,
            environment=report.environment,
        ),
    )
    logger.debug("Registered test run %s (%s)", run.id, run.identifier)
    return run.id


def import_recommendations(
    session: Session, test_run_id: int, recommendations: Optional[List[Recommendation]]
) -> int:
    if not recommendations:
        return 0

    for order, rec in enumerate(recommendations):
        session.add(
            models.Recommendation(
                test_run_id=test_run_id,
                category=rec.category,
                priority=rec.priority,
                issue=rec.issue,
                impact=rec.impact,
                solutions=json.dumps(rec.solutions or []),
                recommendation_order=order,
            )
        )
    session.flush()
    logger.debug("Imported %d recommendations for run %s", len(recommendations), test_run_id)
    return len(recommendations)


def import_core_web_vitals(
    session: Session, report: CoreWebVitalsReport, report_location: str, clock: Clock = time.time
) -> int:
    url = report.testConfig.url
    logger.info("Importing Core Web Vitals: %s", url)

    test_run_id = register_run(
        session,
        report,
        kind=ReportKind.CORE_WEB_VITALS,
        name=f"Core Web Vitals - {url}",
        url=url,
        overall_score=report.overallScore,
        report_location=report_location,
        clock=clock,
    )

    for metric_name, metric in report.coreWebVitals.items():
        session.add(
            models.CoreWebVitalsMetric(
                test_run_id=test_run_id,
                metric_name=metric_name.upper(),
                metric_type=metric_name.upper(),
                average=metric.average,
                median=metric.median,
                p75=metric.p75,
                p95=metric.p95,
                p99=metric.p99,
                min=metric.min,
                max=metric.max,
                passing_threshold=metric.passingThreshold,
                needs_improvement_threshold=metric.needsImprovementThreshold,
                score=metric.score,
                rating=metric.rating,
                sample_size=metric.sampleSize,
                unit_code="ratio" if metric_name.lower() == "cls" else "ms",
            )
        )
    logger.debug("Imported %d Core Web Vitals metrics", len(report.coreWebVitals))

    for iteration in report.rawData or []:
        page = iteration.performanceMetrics
        session.add(
            models.CwvIteration(
                test_run_id=test_run_id,
                iteration_number=iteration.iteration,
                timestamp=iteration.timestamp,
                lcp=iteration.lcp,
                fid=iteration.fid,
                cls=iteration.cls,
                dom_content_loaded=page.domContentLoaded if page else None,
                load_complete=page.loadComplete if page else None,
                first_contentful_paint=page.firstContentfulPaint if page else None,
                time_to_interactive=page.timeToInteractive if page else None,
                total_bytes=page.totalBytes if page else None,
                dom_nodes=page.domNodes if page else None,
                ttfb=page.ttfb if page else None,
                tbt=page.tbt if page else None,
                speed_index=page.speedIndex if page else None,
                errors=json.dumps(iteration.errors or []),
            )
        )
    if report.rawData:
        logger.debug("Imported %d iterations", len(report.rawData))

    session.flush()
    logger.info("Imported Core Web Vitals test (ID: %s)", test_run_id)
    return test_run_id


def import_load_test(
    session: Session, report: LoadTestReport, report_location: str, clock: Clock = time.time
) -> int:
    config = report.testConfiguration
    logger.info("Importing Load Test: %s", config.targetUrl)

    test_run_id = register_run(
        session,
        report,
        kind=ReportKind.LOAD_TEST,
        name=f"Load Test - {config.targetUrl}",
        url=config.targetUrl,
        overall_score=report.overallScore,
        report_location=report_location,
        clock=clock,
    )

    session.add(
        models.LoadTestConfig(
            test_run_id=test_run_id,
            target_url=config.targetUrl,
            max_concurrent_users=config.maxConcurrentUsers,
            ramp_up_duration=config.rampUpDuration,
            test_duration=config.testDuration,
            actual_duration=config.actualDuration,
            request_delay=config.requestDelay,
        )
    )

    stats = report.requestStatistics
    perf = report.performanceMetrics
    session.add(
        models.LoadTestStats(
            test_run_id=test_run_id,
            total_requests=stats.total,
            successful_requests=stats.successful,
            failed_requests=stats.failed,
            success_rate=parse_percentage(stats.successRate),
            error_rate=parse_percentage(stats.errorRate),
            avg_response_time=perf.averageResponseTime,
            median_response_time=perf.medianResponseTime,
            p95_response_time=perf.p95ResponseTime,
            p99_response_time=perf.p99ResponseTime,
            min_response_time=perf.minResponseTime,
            max_response_time=perf.maxResponseTime,
            requests_per_second=perf.requestsPerSecond,
            peak_rps=perf.peakRPS,
        )
    )

    time_slices = report.loadPatterns.timeSlices if report.loadPatterns else None
    for time_slice in time_slices or []:
        session.add(
            models.LoadTestTimeSlice(
                test_run_id=test_run_id,
                start_time=time_slice.startTime,
                duration=time_slice.duration,
                requests=time_slice.requests,
                successful_requests=time_slice.successfulRequests,
                failed_requests=time_slice.failedRequests,
                avg_response_time=time_slice.averageResponseTime,
                requests_per_second=time_slice.requestsPerSecond,
            )
        )

    for point in report.timeline or []:
        session.add(
            models.LoadTestTimelinePoint(
                test_run_id=test_run_id,
                timestamp=point.timestamp,
                active_users=point.activeUsers,
                total_requests=point.totalRequests,
                total_errors=point.totalErrors,
                requests_per_second=point.requestsPerSecond,
            )
        )
    session.flush()

    if report.errorAnalysis:
        _import_error_analysis(session, test_run_id, report)

    import_recommendations(session, test_run_id, report.recommendations)

    logger.info("Imported Load Test (ID: %s)", test_run_id)
    return test_run_id


def _import_error_analysis(session: Session, test_run_id: int, report: LoadTestReport):
    errors = report.errorAnalysis

    # children reference the analysis row, so it has to get its id first
    analysis = _add(
        session,
        models.ErrorAnalysis(
            test_run_id=test_run_id,
            total_errors=errors.totalErrors,
            error_rate=parse_percentage(errors.errorRate),
            most_common_error=errors.mostCommonError,
        ),
    )

    for message, count in (errors.errorsByType or {}).items():
        session.add(
            models.ErrorsByType(
                error_analysis_id=analysis.id,
                error_type="HTTP_ERROR",
                error_message=message,
                count=count,
            )
        )

    for status_code, count in (errors.errorsByStatusCode or {}).items():
        session.add(
            models.ErrorsByStatus(
                error_analysis_id=analysis.id,
                status_code=status_code,
                count=count,
            )
        )
    session.flush()


def import_stress_test(
    session: Session, report: StressTestReport, report_location: str, clock: Clock = time.time
) -> int:
    config = report.testConfiguration
    logger.info("Importing Stress Test: %s", config.targetUrl)

    test_run_id = register_run(
        session,
        report,
        kind=ReportKind.STRESS_TEST,
        name=f"Stress Test - {config.targetUrl}",
        url=config.targetUrl,
        overall_score=report.overallScore,
        report_location=report_location,
        clock=clock,
    )

    session.add(
        models.StressTestConfig(
            test_run_id=test_run_id,
            target_url=config.targetUrl,
            initial_users=config.initialUsers,
            max_users=config.maxUsers,
            step_size=config.stepSize,
            step_duration=config.stepDuration,
            total_steps=config.totalSteps,
            request_interval=config.requestInterval,
        )
    )

    # absent sections mean the system never broke or limits were not computed
    if report.breakingPoint:
        session.add(
            models.StressTestBreakingPoint(
                test_run_id=test_run_id,
                users=report.breakingPoint.users,
                step=report.breakingPoint.step,
                reason=report.breakingPoint.reason,
            )
        )

    if report.lastSuccessfulLoad:
        last = report.lastSuccessfulLoad
        session.add(
            models.StressTestLastSuccessful(
                test_run_id=test_run_id,
                step=last.step,
                users=last.users,
                error_rate=parse_percentage(last.errorRate),
                avg_response_time=last.avgResponseTime,
                requests_per_second=last.requestsPerSecond,
            )
        )

    for step in report.stepResults or []:
        session.add(
            models.StressTestStep(
                test_run_id=test_run_id,
                step_number=step.step,
                users=step.users,
                error_rate=parse_percentage(step.errorRate),
                avg_response_time=step.avgResponseTime,
                throughput=step.throughput,
                total_requests=step.totalRequests,
                successful_requests=step.successfulRequests,
                failed_requests=step.failedRequests,
            )
        )

    if report.systemLimits:
        limits = report.systemLimits
        session.add(
            models.StressTestLimits(
                test_run_id=test_run_id,
                max_throughput=limits.maxThroughput,
                max_concurrent_users=limits.maxConcurrentUsers,
                recommended_capacity=limits.recommendedCapacity,
                scaling_factor=limits.scalingFactor,
            )
        )
    session.flush()

    import_recommendations(session, test_run_id, report.recommendations)

    logger.info("Imported Stress Test (ID: %s)", test_run_id)
    return test_run_id


def import_schema_impact(
    session: Session, report: SchemaImpactReport, report_location: str, clock: Clock = time.time
) -> int:
    logger.info("Importing Schema Impact: %s", report.website)

    summary = report.summary
    test_run_id = register_run(
        session,
        report,
        kind=ReportKind.SCHEMA_IMPACT,
        name=f"Schema Impact Analysis - {report.website}",
        url=report.website,
        version=DEFAULT_REPORT_VERSION,
        status="SUCCESS",
        overall_score=summary.overallScore,
        report_location=report_location,
        clock=clock,
    )

    session.add(
        models.SchemaImpactSummary(
            test_run_id=test_run_id,
            website=report.website,
            total_tests=summary.totalTests,
            seo_score=summary.seoScore,
            llm_score=summary.llmScore,
            performance_score=summary.performanceScore,
            overall_score=summary.overallScore,
        )
    )

    results = report.detailedResults
    for model, metrics in (
        (models.SeoMetric, results.seo),
        (models.LlmMetric, results.llm),
        (models.PerformanceMetric, results.performance),
    ):
        for metric_name, data in metrics.items():
            session.add(
                model(
                    test_run_id=test_run_id,
                    metric_name=metric_name,
                    score=data.score,
                    max_score=data.maxScore,
                    details=_json_text(data.details),
                )
            )

    impact = results.businessImpact
    traffic = impact.organicTraffic
    ctr = impact.clickThroughRate
    voice = impact.voiceSearchCapture
    brand = impact.brandAuthority
    session.add(
        models.BusinessImpact(
            test_run_id=test_run_id,
            current_monthly_traffic=traffic.currentMonthlyTraffic,
            projected_traffic_increase=parse_percentage(traffic.projectedIncrease),
            additional_monthly_visitors=traffic.additionalMonthlyVisitors,
            annual_value=parse_currency(traffic.annualizedValue),
            traffic_confidence=traffic.confidence,
            current_ctr=parse_percentage(ctr.currentCTR),
            projected_ctr=parse_percentage(ctr.projectedCTR),
            ctr_improvement=parse_percentage(ctr.improvement),
            additional_clicks=ctr.additionalClicks,
            ctr_confidence=ctr.confidence,
            monthly_voice_searches=voice.monthlyVoiceSearches,
            voice_capture_rate=parse_percentage(voice.estimatedCaptureRate),
            additional_voice_traffic=voice.additionalVoiceTraffic,
            yearly_voice_value=parse_currency(voice.yearlyValue),
            voice_confidence=voice.confidence,
            knowledge_graph_likelihood=brand.knowledgeGraphLikelihood,
            trust_signal_score=parse_fraction_numerator(brand.trustSignalScore),
            competitive_advantage=brand.competitiveAdvantage,
            brand_recognition_lift=parse_percentage(brand.brandRecognitionLift),
            market_positioning=brand.marketPositioning,
            brand_confidence=brand.confidence,
        )
    )
    session.flush()

    logger.info("Imported Schema Impact (ID: %s)", test_run_id)
    return test_run_id


IMPORTERS = {
    ReportKind.CORE_WEB_VITALS: import_core_web_vitals,
    ReportKind.LOAD_TEST: import_load_test,
    ReportKind.STRESS_TEST: import_stress_test,
    ReportKind.SCHEMA_IMPACT: import_schema_impact,
}


class ImportSummary(BaseModel):
    imported: List[str] = Field(default_factory=list)
    skipped: List[str] = Field(default_factory=list)
    failed: List[str] = Field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.imported) + len(self.skipped) + len(self.failed)


class TestDataImporter:
    """Owns the database handle for one import session.

    Open with ``connect()`` (or use as a context manager) before importing and
    ``close()`` afterwards; the engine is never reopened mid-batch.
    """

    __test__ = False

    def __init__(self, db_path: str = DEFAULT_DB_PATH, clock: Clock = time.time):
        self.db_path = db_path
        self.clock = clock
        self.engine = None
        self.Session = None

    def connect(self):
        self.engine = create_db_engine(self.db_path)
        self.Session = make_session_factory(self.engine)
        logger.info("Connected to database: %s", self.db_path)

    def close(self):
        if self.engine is not None:
            self.engine.dispose()
            self.engine = None
            self.Session = None
            logger.info("Database connection closed")

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, *exc_info):
        self.close()

    def init_schema(self):
        ddl.init_schema(self.engine)
        logger.info("Schema initialized successfully")

    def clear_data(self):
        with self.Session() as session, session.begin():
            for model in models.CLEAR_ORDER:
                session.execute(delete(model))
        logger.info("All data cleared")

    def import_report(self, document, report_location: str) -> Optional[int]:
        """Import one parsed JSON document. Returns the run id, or None for unknown shapes."""
        kind, report = parse_report(document)
        if report is None:
            logger.warning("Unknown report type: %s", report_location)
            return None

        with self.Session() as session, session.begin():
            return IMPORTERS[kind](session, report, report_location, self.clock)

    def import_file(self, file_path) -> Optional[int]:
        _, run_id = self._import_path(Path(file_path))
        return run_id

    def import_directory(self, dir_path) -> ImportSummary:
        directory = Path(dir_path)
        files = sorted(p for p in directory.iterdir() if p.suffix == ".json" and p.is_file())
        logger.info("Found %d JSON files in %s", len(files), directory)

        summary = ImportSummary()
        for path in files:
            outcome, _ = self._import_path(path)
            getattr(summary, outcome).append(str(path))

        logger.info(
            "Imported %d, skipped %d, failed %d of %d files",
            len(summary.imported),
            len(summary.skipped),
            len(summary.failed),
            summary.total,
        )
        return summary

    def _import_path(self, path: Path) -> Tuple[str, Optional[int]]:
        # a bad file is logged and reported, never allowed to stop the batch
        try:
            with open(path, encoding="utf-8") as f:
                document = json.load(f)
            run_id = self.import_report(document, str(path))
        except (OSError, ValueError, SQLAlchemyError) as e:
            logger.error("Error importing %s: %s", path, e)
            return "failed", None
        return ("imported" if run_id is not None else "skipped"), run_id
