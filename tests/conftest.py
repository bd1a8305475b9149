import itertools
import json

import pytest
from sqlalchemy import func, select

from importer import TestDataImporter


@pytest.fixture
def clock():
    """Deterministic clock: one second later on every call, so identifiers never collide."""
    seconds = itertools.count(1_761_991_200)
    return lambda: float(next(seconds))


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "performance_tests.db"


@pytest.fixture
def importer(db_path, clock):
    """Connected importer over a fresh, initialised database."""
    with TestDataImporter(str(db_path), clock=clock) as imp:
        imp.init_schema()
        yield imp


@pytest.fixture
def db_session(importer):
    with importer.Session() as session:
        yield session


@pytest.fixture
def count_rows(importer):
    def _count(model, *criteria):
        with importer.Session() as session:
            return session.scalar(select(func.count()).select_from(model).where(*criteria))

    return _count


@pytest.fixture
def write_report(tmp_path):
    def _write(name, document):
        path = tmp_path / name
        if isinstance(document, str):
            path.write_text(document, encoding="utf-8")
        else:
            path.write_text(json.dumps(document), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def cwv_report():
    return {
        "testSuite": "Core Web Vitals",
        "version": "2.1.0",
        "status": "SUCCESS",
        "timestamp": "2025-11-01T10:00:00Z",
        "overallScore": 87,
        "testConfig": {"url": "https://example.com", "iterations": 2},
        "coreWebVitals": {
            "lcp": {
                "average": 2100.5,
                "median": 2050,
                "p75": 2300,
                "min": 1800,
                "max": 2600,
                "passingThreshold": 2500,
                "needsImprovementThreshold": 4000,
                "score": 90,
                "rating": "GOOD",
                "sampleSize": 2,
            },
            "fid": {
                "average": 45,
                "median": 40,
                "p75": 60,
                "min": 30,
                "max": 70,
                "passingThreshold": 100,
                "needsImprovementThreshold": 300,
                "score": 95,
                "rating": "GOOD",
                "sampleSize": 2,
            },
            "cls": {
                "average": 0.12,
                "median": 0.11,
                "p75": 0.14,
                "min": 0.08,
                "max": 0.16,
                "passingThreshold": 0.1,
                "needsImprovementThreshold": 0.25,
                "score": 70,
                "rating": "NEEDS_IMPROVEMENT",
                "sampleSize": 2,
            },
        },
        "rawData": [
            {
                "iteration": 1,
                "timestamp": "2025-11-01T10:00:05Z",
                "lcp": 1800,
                "fid": 30,
                "cls": 0.08,
                "performanceMetrics": {
                    "domContentLoaded": 900,
                    "loadComplete": 1500,
                    "firstContentfulPaint": 700,
                    "timeToInteractive": 2000,
                    "totalBytes": 512000,
                    "domNodes": 845,
                },
                "errors": ["net::ERR_ABORTED favicon.ico"],
            },
            {
                "iteration": 2,
                "timestamp": "2025-11-01T10:00:15Z",
                "lcp": 2600,
                "fid": 70,
                "cls": 0.16,
            },
        ],
    }


@pytest.fixture
def load_report():
    return {
        "testSuite": "Load Testing",
        "version": "1.0.0",
        "status": "PASSED",
        "timestamp": "2025-11-01T11:00:00Z",
        "overallScore": 72,
        "testConfiguration": {
            "targetUrl": "https://example.com/api",
            "maxConcurrentUsers": 50,
            "rampUpDuration": 30,
            "testDuration": 120,
            "actualDuration": 121,
        },
        "requestStatistics": {
            "total": 1000,
            "successful": 985,
            "failed": 15,
            "successRate": "98.50%",
            "errorRate": "1.50%",
        },
        "performanceMetrics": {
            "averageResponseTime": 250.4,
            "medianResponseTime": 220,
            "p95ResponseTime": 480,
            "p99ResponseTime": 910,
            "minResponseTime": 85,
            "maxResponseTime": 1500,
            "requestsPerSecond": 8.3,
            "peakRPS": 12.5,
        },
        "loadPatterns": {
            "timeSlices": [
                {
                    "startTime": "2025-11-01T11:00:00Z",
                    "duration": 30,
                    "requests": 200,
                    "successfulRequests": 199,
                    "failedRequests": 1,
                    "averageResponseTime": 210,
                    "requestsPerSecond": 6.7,
                },
                {
                    "startTime": "2025-11-01T11:00:30Z",
                    "duration": 30,
                    "requests": 300,
                    "successfulRequests": 294,
                    "failedRequests": 6,
                    "averageResponseTime": 260,
                    "requestsPerSecond": 10,
                },
                {
                    "startTime": "2025-11-01T11:01:00Z",
                    "duration": 30,
                    "requests": 500,
                    "successfulRequests": 492,
                    "failedRequests": 8,
                    "averageResponseTime": 270,
                    "requestsPerSecond": 12.5,
                },
            ]
        },
        "timeline": [
            {"timestamp": 1761994800000, "activeUsers": 10, "totalRequests": 40, "totalErrors": 0, "requestsPerSecond": 8},
            {"timestamp": 1761994805000, "activeUsers": 20, "totalRequests": 95, "totalErrors": 1, "requestsPerSecond": 11},
            {"timestamp": 1761994810000, "activeUsers": 35, "totalRequests": 160, "totalErrors": 3, "requestsPerSecond": 13},
            {"timestamp": 1761994815000, "activeUsers": 50, "totalRequests": 230, "totalErrors": 4, "requestsPerSecond": 14},
        ],
        "errorAnalysis": {
            "totalErrors": 15,
            "errorRate": "1.5%",
            "mostCommonError": "Request timeout",
            "errorsByType": {"Request timeout": 10, "Internal Server Error": 5},
            "errorsByStatusCode": {"500": 5, "504": 10},
        },
        "recommendations": [
            {
                "category": "Performance",
                "priority": "HIGH",
                "issue": "Slow p99 response time",
                "impact": "Tail latency affects 1% of users",
                "solutions": ["Add caching", "Tune connection pool"],
            },
            {
                "category": "Reliability",
                "priority": "MEDIUM",
                "issue": "Timeouts under peak load",
                "impact": "Requests fail at 50 users",
                "solutions": ["Increase upstream timeout"],
            },
            {
                "category": "Capacity",
                "priority": "LOW",
                "issue": "No autoscaling",
            },
        ],
    }


@pytest.fixture
def stress_report():
    return {
        "testSuite": "Stress Testing",
        "version": "1.0.0",
        "status": "BREAKING_POINT_FOUND",
        "timestamp": "2025-11-01T12:00:00Z",
        "overallScore": 64,
        "testConfiguration": {
            "targetUrl": "https://example.com/checkout",
            "initialUsers": 10,
            "maxUsers": 200,
            "stepSize": 10,
            "stepDuration": 30,
            "totalSteps": 20,
        },
        "breakingPoint": {"users": 120, "step": 12, "reason": "Error rate exceeded 10%"},
        "lastSuccessfulLoad": {
            "step": 11,
            "users": 110,
            "errorRate": "4.2%",
            "avgResponseTime": 820,
            "requestsPerSecond": 45.5,
        },
        "stepResults": [
            {"step": 1, "users": 10, "errorRate": 0, "avgResponseTime": 120, "throughput": 8.1},
            {"step": 2, "users": 20, "errorRate": "0.5%", "avgResponseTime": 140, "throughput": 15.9},
        ],
        "systemLimits": {
            "maxThroughput": 47.2,
            "maxConcurrentUsers": 110,
            "recommendedCapacity": 88,
            "scalingFactor": 0.8,
        },
        "recommendations": [
            {
                "category": "Scalability",
                "priority": "CRITICAL",
                "issue": "System breaks at 120 users",
                "impact": "Checkout unavailable during peaks",
                "solutions": ["Scale out app servers", "Add queueing"],
            },
        ],
    }


@pytest.fixture
def schema_report():
    return {
        "website": "https://example.com",
        "timestamp": "2025-11-01T13:00:00Z",
        "summary": {
            "totalTests": 12,
            "seoScore": 80,
            "llmScore": 70,
            "performanceScore": 90,
            "overallScore": 80,
        },
        "detailedResults": {
            "seo": {
                "richSnippets": {"score": 8, "maxScore": 10, "details": "Product and FAQ markup found"},
                "structuredData": {"score": 9, "maxScore": 10, "details": "No validation errors"},
            },
            "llm": {
                "entityClarity": {"score": 7, "maxScore": 10, "details": {"entities": ["Organization", "Product"]}},
            },
            "performance": {
                "payloadSize": {"score": 9, "maxScore": 10, "details": "JSON-LD adds 2.1 KB"},
                "parseTime": {"score": 10, "maxScore": 10},
            },
            "businessImpact": {
                "organicTraffic": {
                    "currentMonthlyTraffic": 50000,
                    "projectedIncrease": "23.4%",
                    "additionalMonthlyVisitors": 11700,
                    "annualizedValue": "$12,345.67",
                    "confidence": 75,
                },
                "clickThroughRate": {
                    "currentCTR": "2.1%",
                    "projectedCTR": "3.4%",
                    "improvement": "61.9%",
                    "additionalClicks": 650,
                    "confidence": 70,
                },
                "voiceSearchCapture": {
                    "monthlyVoiceSearches": 4000,
                    "estimatedCaptureRate": "15%",
                    "additionalVoiceTraffic": 600,
                    "yearlyValue": "$7,200",
                    "confidence": 60,
                },
                "brandAuthority": {
                    "knowledgeGraphLikelihood": "HIGH",
                    "trustSignalScore": "7.5/10",
                    "competitiveAdvantage": "Strong",
                    "brandRecognitionLift": "12%",
                    "marketPositioning": "Leader",
                    "confidence": 65,
                },
            },
        },
    }
