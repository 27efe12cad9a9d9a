"""Central registry for Prometheus metrics used across the backend."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram, Summary


REQUEST_COUNTER = Counter(
	"matchup_http_requests_total",
	"Total HTTP requests processed",
	["route", "method", "status"],
)

REQUEST_LATENCY = Histogram(
	"matchup_http_request_duration_seconds",
	"HTTP request latency in seconds",
	["route", "method"],
	buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 30.0, 60.0),
)

MATCH_ACTIONS = Counter(
	"matchup_match_actions_total",
	"Swipe actions recorded",
	["action"],
)

MATCHES_CREATED = Counter(
	"matchup_matches_created_total",
	"Pairs that transitioned into matched",
)

MATCHES_CLOSED = Counter(
	"matchup_matches_closed_total",
	"Matches closed by unmatch or block",
	["status"],
)

MESSAGES_SENT = Counter(
	"matchup_messages_sent_total",
	"Messages persisted",
	["type"],
)

MESSAGE_DELIVERY_FAILURES = Counter(
	"matchup_message_delivery_flag_failures_total",
	"Messages whose delivered flag could not be recorded",
)

MESSAGES_READ = Counter(
	"matchup_messages_read_total",
	"Messages marked read",
)

LONGPOLL_OUTCOMES = Counter(
	"matchup_longpoll_outcomes_total",
	"Long-poll waits by outcome",
	["outcome"],
)

GROUP_JOINS = Counter(
	"matchup_group_joins_total",
	"Event and study group joins",
	["kind", "result"],
)

NOTIFICATIONS_SENT = Counter(
	"matchup_notifications_total",
	"Notifications persisted",
	["kind"],
)

NOTIFICATION_FAILURES = Counter(
	"matchup_notification_failures_total",
	"Notifications that could not be persisted",
	["kind"],
)

RATE_LIMITED = Counter(
	"matchup_rate_limited_total",
	"Requests rejected by rate limiting",
	["kind"],
)

BACKGROUND_RUNS = Counter(
	"matchup_background_tasks_total",
	"Fire-and-forget task outcomes",
	["name", "result"],
)

REDIS_UP = Gauge("matchup_redis_up", "Redis availability (1=up,0=down)")
REDIS_LATENCY = Summary("matchup_redis_latency_seconds", "Redis ping latency (seconds)")

POSTGRES_UP = Gauge("matchup_postgres_up", "Postgres availability (1=up,0=down)")
POSTGRES_LATENCY = Summary("matchup_postgres_latency_seconds", "Postgres ping latency (seconds)")


def observe_request(route: str, method: str, status: int, elapsed_seconds: float) -> None:
	REQUEST_COUNTER.labels(route=route, method=method, status=str(status)).inc()
	REQUEST_LATENCY.labels(route=route, method=method).observe(elapsed_seconds)


def inc_match_action(action: str) -> None:
	MATCH_ACTIONS.labels(action=action).inc()


def inc_match_created() -> None:
	MATCHES_CREATED.inc()


def inc_match_closed(status: str) -> None:
	MATCHES_CLOSED.labels(status=status).inc()


def inc_message_sent(message_type: str) -> None:
	MESSAGES_SENT.labels(type=message_type).inc()


def inc_delivery_failure() -> None:
	MESSAGE_DELIVERY_FAILURES.inc()


def inc_messages_read(count: int) -> None:
	if count > 0:
		MESSAGES_READ.inc(count)


def inc_longpoll(outcome: str) -> None:
	LONGPOLL_OUTCOMES.labels(outcome=outcome).inc()


def inc_group_join(kind: str, result: str) -> None:
	GROUP_JOINS.labels(kind=kind, result=result).inc()


def inc_notification(kind: str, *, ok: bool = True) -> None:
	if ok:
		NOTIFICATIONS_SENT.labels(kind=kind).inc()
	else:
		NOTIFICATION_FAILURES.labels(kind=kind).inc()


def inc_rate_limited(kind: str) -> None:
	RATE_LIMITED.labels(kind=kind).inc()


def record_background(name: str, *, result: str) -> None:
	BACKGROUND_RUNS.labels(name=name, result=result).inc()


def mark_redis(ok: bool, *, latency_seconds: float | None = None) -> None:
	REDIS_UP.set(1 if ok else 0)
	if latency_seconds is not None:
		REDIS_LATENCY.observe(latency_seconds)


def mark_postgres(ok: bool, *, latency_seconds: float | None = None) -> None:
	POSTGRES_UP.set(1 if ok else 0)
	if latency_seconds is not None:
		POSTGRES_LATENCY.observe(latency_seconds)
