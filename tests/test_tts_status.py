import threading

from dictation.tts_status import COMPLETE, ERROR, GENERATING, TtsStatusRegistry


class FakeClock:
	def __init__(self):
		self.now = 1000.0

	def __call__(self):
		return self.now


def make_registry(retention=300):
	clock = FakeClock()
	return TtsStatusRegistry(retention_seconds=retention, clock=clock), clock


def test_progress_until_complete():
	registry, _ = make_registry()
	registry.begin(1, 3)
	assert registry.get(1).to_dict() == {"status": GENERATING, "current": 0, "total": 3}
	registry.advance(1)
	registry.advance(1)
	assert registry.get(1).status == GENERATING
	registry.advance(1)
	job = registry.get(1)
	assert (job.status, job.current, job.total) == (COMPLETE, 3, 3)


def test_current_never_exceeds_total():
	registry, _ = make_registry()
	registry.begin(1, 1)
	registry.advance(1)
	registry.advance(1)
	job = registry.get(1)
	assert job.current == job.total == 1


def test_error_keeps_progress():
	registry, _ = make_registry()
	registry.begin(7, 4)
	registry.advance(7)
	registry.mark_error(7)
	job = registry.get(7)
	assert (job.status, job.current, job.total) == (ERROR, 1, 4)


def test_mark_complete_does_not_override_error():
	registry, _ = make_registry()
	registry.begin(7, 2)
	registry.mark_error(7)
	registry.mark_complete(7)
	assert registry.get(7).status == ERROR


def test_begin_while_generating_widens_total():
	registry, _ = make_registry()
	registry.begin(3, 5)
	registry.advance(3)
	registry.begin(3, 1)
	job = registry.get(3)
	assert (job.current, job.total) == (1, 6)


def test_begin_after_terminal_starts_fresh():
	registry, _ = make_registry()
	registry.begin(3, 1)
	registry.advance(3)
	registry.begin(3, 1)
	job = registry.get(3)
	assert (job.status, job.current, job.total) == (GENERATING, 0, 1)


def test_terminal_entries_evicted_after_retention():
	registry, clock = make_registry(retention=300)
	registry.begin(1, 1)
	registry.advance(1)
	registry.begin(2, 2)
	clock.now += 299
	assert set(registry.get_all()) == {1, 2}
	clock.now += 1
	assert registry.get(1) is None
	# still generating, never evicted
	assert registry.get(2) is not None


def test_sweep_reports_evictions():
	registry, clock = make_registry(retention=10)
	registry.begin(1, 1)
	registry.mark_error(1)
	registry.begin(2, 1)
	registry.advance(2)
	clock.now += 10
	assert registry.sweep() == 2
	assert registry.get_all() == {}


def test_get_returns_snapshot():
	registry, _ = make_registry()
	registry.begin(1, 2)
	snapshot = registry.get(1)
	registry.advance(1)
	assert snapshot.current == 0
	assert registry.get(1).current == 1


def test_string_and_int_ids_share_an_entry():
	registry, _ = make_registry()
	registry.begin("4", 2)
	registry.advance(4)
	assert registry.get("4").current == 1


def test_concurrent_advances_are_not_lost():
	registry, _ = make_registry()
	registry.begin(1, 800)

	def worker():
		for _ in range(200):
			registry.advance(1)

	threads = [threading.Thread(target=worker) for _ in range(4)]
	for t in threads:
		t.start()
	for t in threads:
		t.join()
	job = registry.get(1)
	assert (job.status, job.current) == (COMPLETE, 800)
