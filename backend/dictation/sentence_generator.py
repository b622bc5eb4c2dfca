"""
Dictation sentence generation with Gemini.

Builds a grade-aware prompt (elementary grades 1-6) around the teacher's
keywords and parses the JSON sentence list the model returns.
"""

from __future__ import annotations
import json
import re
from typing import Any, Dict, List

from .errors import ValidationError
from .gemini_client import GeminiClient

# Difficulty guide per elementary grade: (level, recommended length, features)
GRADE_GUIDE: Dict[int, Dict[str, str]] = {
    1: {"level": "매우 쉬운", "length": "10~15자", "description": "기본 받침과 간단한 단어 위주, 짧은 문장"},
    2: {"level": "쉬운", "length": "15~20자", "description": "겹받침 일부 포함, 간단한 조사 활용"},
    3: {"level": "보통", "length": "20~30자", "description": "다양한 받침과 조사, 기본적인 연결어미 사용"},
    4: {"level": "중간", "length": "25~35자", "description": "복합 문장 구조, 다양한 어휘 활용"},
    5: {"level": "어려운", "length": "30~40자", "description": "복잡한 문장 구조, 관용 표현 포함 가능"},
    6: {"level": "높은", "length": "35~45자", "description": "고급 어휘와 복잡한 문장, 추상적 개념 포함 가능"},
}

DEFAULT_GRADE = 3


def split_keywords(inputs: str) -> List[str]:
    return [k.strip() for k in (inputs or "").split(",") if k.strip()]


def build_prompt(keywords: List[str], additional_requests: str, count: int, grade: int) -> str:
    """
    Build the generation prompt.

    Keywords are placed one per sentence when there are no more keywords than
    sentences; otherwise they are spread across the sentences, each used once.
    """
    guide = GRADE_GUIDE.get(grade, GRADE_GUIDE[DEFAULT_GRADE])
    prompt = (
        f"당신은 초등학교 {grade}학년을 위한 받아쓰기 문제를 출제하는 선생님입니다.\n\n"
        f"대상 학년: 초등학교 {grade}학년\n"
        f"난이도: {guide['level']}\n"
        f"권장 문장 길이: {guide['length']}\n"
        f"특징: {guide['description']}\n\n"
        f"총 {count}개의 받아쓰기 문장을 만들어주세요.\n\n"
    )

    if keywords and len(keywords) <= count:
        lines = "\n".join(f'{i}번 문장: "{k}" 포함' for i, k in enumerate(keywords, start=1))
        prompt += (
            "다음 단어/표현을 각각 하나의 문장에만 포함시켜주세요 "
            "(각 단어/표현은 전체 문제 세트에서 딱 한 번만 사용):\n"
            f"{lines}\n\n"
        )
        remaining = count - len(keywords)
        if remaining > 0:
            prompt += f"나머지 {remaining}개 문장은 {grade}학년에게 적합한 내용으로 자유롭게 작성해주세요.\n\n"
    elif keywords:
        lines = "\n".join(f'{i}. "{k}"' for i, k in enumerate(keywords, start=1))
        prompt += (
            f"다음 {len(keywords)}개의 단어/표현을 {count}개 문장에 골고루 분배하여 포함시켜주세요.\n"
            "각 단어/표현은 전체 문제 세트에서 딱 한 번만 사용되어야 합니다.\n"
            "한 문장에 여러 개의 단어/표현이 들어가도 되지만, 자연스러운 문장이 되도록 작성하세요.\n\n"
            f"포함시킬 단어/표현:\n{lines}\n\n"
        )
    else:
        prompt += f"{grade}학년에게 적합한 내용으로 {count}개 문장을 자유롭게 작성해주세요.\n\n"

    if additional_requests and additional_requests.strip():
        prompt += f"추가 요청사항:\n{additional_requests.strip()}\n\n"

    prompt += (
        "요구사항:\n"
        f"1. 각 문장은 초등학교 {grade}학년이 이해하기 쉬운 자연스러운 문장이어야 합니다.\n"
        "2. 교육적이고 긍정적인 내용으로 작성하세요.\n"
        "3. 각 단어/표현은 해당 문장에만 사용하고 다른 문장에서는 사용하지 마세요.\n"
        "4. 해라체, 하게체, 하오체, 합쇼체 등 다양한 높임 수준으로 문장을 끝 맺게 하되 자연스럽게 해줘.\n"
        "5. 쉼표(,)나 따옴표(\"\", '')를 절대 사용하지 않는 문장을 생성하세요.\n"
        "6. 모든 문장은 반드시 마침표(.) 또는 물음표(?)로 끝나야 합니다.\n\n"
        "반드시 다음 JSON 형식으로만 응답하세요. 다른 설명이나 텍스트는 포함하지 마세요:\n"
        '{\n  "sentences": ["문장1", "문장2", "문장3", ...]\n}'
    )
    return prompt


def extract_json_object(text: str) -> Dict[str, Any]:
    """
    Extract a JSON object from model output.

    Handles raw JSON, JSON wrapped in a markdown code block and JSON embedded
    in surrounding text. Raises ValueError when nothing parses.
    """
    try:
        return json.loads(text)
    except Exception:
        pass

    code_block = re.search(r"```(?:json)?\s*([\s\S]*?)\s*```", text)
    if code_block:
        try:
            return json.loads(code_block.group(1))
        except Exception:
            pass

    first = text.find("{")
    last = text.rfind("}")
    if first != -1 and last > first:
        try:
            return json.loads(text[first : last + 1])
        except Exception:
            pass

    raise ValueError("model did not return valid JSON")


async def generate_sentences(
    client: GeminiClient,
    inputs: str,
    additional_requests: str,
    count: int,
    grade: int = DEFAULT_GRADE,
) -> List[str]:
    if not count or count < 1:
        raise ValidationError("count is required")
    prompt = build_prompt(split_keywords(inputs), additional_requests or "", count, grade or DEFAULT_GRADE)
    raw = await client.generate(prompt)
    data = extract_json_object(raw)
    sentences = data.get("sentences") if isinstance(data, dict) else None
    if not isinstance(sentences, list):
        raise ValueError("model response has no sentence list")
    return [str(s).strip() for s in sentences if str(s).strip()][:count]
