"""
Terminal front end for taking a dictation exam.

    python -m dictation.delivery.console --session <id> --grade 3 --class-num 2 \
        --student-num 14 --name 홍길동 [--review]

Phase 1: type what you heard and press Enter to move on, or wait for the
countdown; ``:r`` plays the sentence again. With --review, phase 2 accepts
``:n`` / ``:p`` to move, ``:r`` to replay, ``:submit`` to finish; any other
line replaces the current answer.
"""

from __future__ import annotations
import argparse
import asyncio
import threading
from typing import Optional

from ..settings import settings
from .client import DictationApiClient
from .engine import ExamEngine, ExamState, StudentIdentity
from .player import CommandAudioPlayer


def _stdin_reader(loop: asyncio.AbstractEventLoop, lines: "asyncio.Queue[Optional[str]]") -> None:
    while True:
        try:
            line = input()
        except EOFError:
            loop.call_soon_threadsafe(lines.put_nowait, None)
            return
        loop.call_soon_threadsafe(lines.put_nowait, line)


_IDLE = "\0"


async def _next_line(lines: "asyncio.Queue[Optional[str]]", timeout: float) -> Optional[str]:
    try:
        return await asyncio.wait_for(lines.get(), timeout)
    except asyncio.TimeoutError:
        return _IDLE


def _show_result(result: dict) -> None:
    print(f"\n점수: {result['score']} / {result['total']}")
    for answer in result.get("answers", []):
        mark = "O" if answer["is_correct"] else "X"
        print(f"{answer['sentence_number']}번 {mark}  내 답: {answer['student_answer'] or '(미입력)'}")
        if not answer["is_correct"]:
            print(f"      정답: {answer['correct_answer']}")


async def run(args: argparse.Namespace) -> int:
    client = DictationApiClient(args.base_url)
    try:
        payload = await client.fetch_session(args.session)
        identity = StudentIdentity(args.grade, args.class_num, args.student_num, args.name)
        engine = ExamEngine.from_payload(
            payload,
            identity,
            player=CommandAudioPlayer(client, settings.exam_player_command, speed=args.speed),
            submitter=client.submit,
            advance_seconds=settings.exam_advance_seconds,
            repeat_pause=settings.exam_repeat_pause_seconds,
            review_phase=args.review,
        )
        print(f"{payload['session'].get('title') or ''} - 받아쓰기 시험 ({len(engine.sentences)}문제)")

        lines: "asyncio.Queue[Optional[str]]" = asyncio.Queue()
        threading.Thread(target=_stdin_reader, args=(asyncio.get_running_loop(), lines), daemon=True).start()

        await engine.start()
        shown = None
        reported = None
        while engine.state not in (ExamState.DONE, ExamState.SUBMIT_REJECTED):
            if engine.last_error is not None and engine.last_error is not reported and engine.state is not ExamState.SUBMIT_FAILED:
                reported = engine.last_error
                print("음성을 재생할 수 없습니다. 음성 파일이 생성 중일 수 있습니다.")
            sentence = engine.current_sentence
            if engine.state in (ExamState.PLAYING, ExamState.AWAITING_ADVANCE, ExamState.REVIEW) and sentence:
                marker = (engine.phase, engine.index)
                if marker != shown:
                    shown = marker
                    prefill = f" [{engine.draft}]" if engine.state is ExamState.REVIEW and engine.draft else ""
                    print(f"\n{sentence.sentence_number}번{prefill}")
            if engine.state is ExamState.SUBMIT_FAILED:
                print(f"제출 실패: {engine.last_error}. Enter를 누르면 다시 제출합니다.")
                if await lines.get() is None:
                    break
                await engine.retry_submit()
                continue
            line = await _next_line(lines, 0.2)
            if line is None:
                break
            if line == _IDLE:
                continue
            if engine.state is ExamState.REVIEW:
                if line == ":n":
                    engine.next()
                elif line == ":p":
                    engine.previous()
                elif line == ":r":
                    if not await engine.replay():
                        print("음성을 재생할 수 없습니다. 음성 파일이 생성 중일 수 있습니다.")
                elif line == ":submit":
                    await engine.submit()
                elif line:
                    engine.type_answer(line)
                    shown = None
            elif engine.state in (ExamState.PLAYING, ExamState.AWAITING_ADVANCE):
                if line == ":r":
                    await engine.replay()
                    continue
                index = engine.index
                engine.type_answer(line)
                engine.advance(index)

        if engine.state is ExamState.SUBMIT_REJECTED:
            print(f"제출이 거부되었습니다: {engine.last_error}")
        if engine.result is None:
            return 1
        _show_result(engine.result)
        return 0
    finally:
        await client.aclose()


def main(argv: Optional[list] = None) -> int:
    parser = argparse.ArgumentParser(description="Take a dictation exam in the terminal")
    parser.add_argument("--base-url", default="http://localhost:8000")
    parser.add_argument("--session", required=True)
    parser.add_argument("--grade", type=int, required=True)
    parser.add_argument("--class-num", type=int, required=True)
    parser.add_argument("--student-num", type=int, required=True)
    parser.add_argument("--name", required=True)
    parser.add_argument("--speed", type=float, default=settings.exam_playback_speed)
    parser.add_argument("--review", action="store_true", help="allow a review pass before submitting")
    args = parser.parse_args(argv)
    return asyncio.run(run(args))


if __name__ == "__main__":
    raise SystemExit(main())
