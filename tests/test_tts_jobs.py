import asyncio

import pytest

from conftest import FakeSynthesizer
from dictation.tts_jobs import SentenceAudio, TtsJobRunner, TtsWorker, korean_ordinal, narration_text
from dictation.tts_status import COMPLETE, ERROR


@pytest.mark.parametrize(
	"num, expected",
	[
		(1, "일 번. "),
		(3, "삼 번. "),
		(10, "십 번. "),
		(11, "십일 번. "),
		(20, "이십 번. "),
		(21, "이십일 번. "),
		(99, "구십구 번. "),
		(100, "100 번. "),
	],
)
def test_korean_ordinal(num, expected):
	assert korean_ordinal(num) == expected


def test_narration_prefixes_ordinal():
	assert narration_text(2, "나는 학교에 간다.") == "이 번.  나는 학교에 간다."


SENTENCES = [
	SentenceAudio(2, "나는 학교에 간다."),
	SentenceAudio(1, "오늘은 날씨가 좋다."),
	SentenceAudio(3, "친구와 함께 놀았다."),
]


def test_runner_writes_every_clip_in_order(audio_store, registry):
	synth = FakeSynthesizer()
	runner = TtsJobRunner(synth, audio_store, registry)
	registry.begin(5, 3)

	assert asyncio.run(runner.run(5, "시아", SENTENCES)) is True

	assert [text for text, _ in synth.calls] == [
		narration_text(1, "오늘은 날씨가 좋다."),
		narration_text(2, "나는 학교에 간다."),
		narration_text(3, "친구와 함께 놀았다."),
	]
	assert audio_store.sentence_numbers(5) == [1, 2, 3]
	assert audio_store.read(5, 2) == f"시아|{narration_text(2, '나는 학교에 간다.')}".encode("utf-8")
	job = registry.get(5)
	assert (job.status, job.current, job.total) == (COMPLETE, 3, 3)


def test_runner_stops_at_first_failure(audio_store, registry):
	synth = FakeSynthesizer(fail_on=["학교"])
	runner = TtsJobRunner(synth, audio_store, registry)
	registry.begin(5, 3)

	assert asyncio.run(runner.run(5, "효은", SENTENCES)) is False

	# sentence 3 is never attempted
	assert len(synth.calls) == 2
	assert audio_store.sentence_numbers(5) == [1]
	job = registry.get(5)
	assert (job.status, job.current, job.total) == (ERROR, 1, 3)


def test_worker_processes_submitted_jobs(audio_store, registry):
	synth = FakeSynthesizer()
	worker = TtsWorker(TtsJobRunner(synth, audio_store, registry), concurrency=2)

	async def scenario():
		await worker.start()
		try:
			worker.submit(1, "시아", SENTENCES)
			worker.submit(2, "선우", [SentenceAudio(1, "하나")])
			await worker.join()
		finally:
			await worker.stop()

	asyncio.run(scenario())
	assert registry.get(1).status == COMPLETE
	assert registry.get(2).status == COMPLETE
	assert audio_store.sentence_numbers(1) == [1, 2, 3]
	assert audio_store.sentence_numbers(2) == [1]
	assert not worker.running


def test_submit_registers_status_immediately(audio_store, registry):
	worker = TtsWorker(TtsJobRunner(FakeSynthesizer(), audio_store, registry))

	async def scenario():
		await worker.start()
		try:
			worker.submit(9, "시아", SENTENCES)
			job = registry.get(9)
			assert (job.status, job.current, job.total) == ("generating", 0, 3)
			await worker.join()
		finally:
			await worker.stop()

	asyncio.run(scenario())


def test_submit_requires_started_worker(audio_store, registry):
	worker = TtsWorker(TtsJobRunner(FakeSynthesizer(), audio_store, registry))
	with pytest.raises(RuntimeError):
		worker.submit(1, "시아", SENTENCES)


async def _wait_until(predicate, timeout=2.0):
	deadline = asyncio.get_running_loop().time() + timeout
	while not predicate():
		if asyncio.get_running_loop().time() > deadline:
			raise AssertionError("condition not reached")
		await asyncio.sleep(0.005)


def test_edit_waits_for_running_job_of_same_set(audio_store, registry):
	synth = FakeSynthesizer(delay=0.02)
	worker = TtsWorker(TtsJobRunner(synth, audio_store, registry), concurrency=2)

	async def scenario():
		await worker.start()
		try:
			worker.submit(1, "시아", SENTENCES)
			worker.submit(1, "시아", [SentenceAudio(3, "새 문장.")])
			await worker.join()
		finally:
			await worker.stop()

	asyncio.run(scenario())
	assert audio_store.read(1, 3) == f"시아|{narration_text(3, '새 문장.')}".encode("utf-8")
	job = registry.get(1)
	assert (job.status, job.current, job.total) == (COMPLETE, 4, 4)


def test_other_sets_still_run_side_by_side(audio_store, registry):
	synth = FakeSynthesizer(delay=0.2)
	worker = TtsWorker(TtsJobRunner(synth, audio_store, registry), concurrency=2)

	async def scenario():
		await worker.start()
		try:
			worker.submit(1, "시아", [SentenceAudio(1, "하나")])
			worker.submit(2, "시아", [SentenceAudio(1, "둘")])
			await _wait_until(lambda: len(synth.calls) == 2)
			# both calls started before either clip was written
			assert audio_store.sentence_numbers(1) == audio_store.sentence_numbers(2) == []
			await worker.join()
		finally:
			await worker.stop()

	asyncio.run(scenario())


def test_cancel_stops_running_job(audio_store, registry):
	synth = FakeSynthesizer(delay=0.02)
	worker = TtsWorker(TtsJobRunner(synth, audio_store, registry))

	async def scenario():
		await worker.start()
		try:
			worker.submit(1, "시아", SENTENCES)
			await _wait_until(lambda: audio_store.exists(1, 1))
			worker.cancel(1)
			audio_store.delete_problem_set(1)
			await worker.join()
		finally:
			await worker.stop()

	asyncio.run(scenario())
	assert not audio_store.problem_dir(1).exists()
	assert registry.get(1) is None


def test_new_job_after_cancel_runs(audio_store, registry):
	worker = TtsWorker(TtsJobRunner(FakeSynthesizer(), audio_store, registry))

	async def scenario():
		await worker.start()
		try:
			worker.cancel(1)
			worker.submit(1, "시아", SENTENCES)
			await worker.join()
		finally:
			await worker.stop()

	asyncio.run(scenario())
	assert registry.get(1).status == COMPLETE
	assert audio_store.sentence_numbers(1) == [1, 2, 3]
