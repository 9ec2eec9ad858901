from quizbee.prompts import build_chat_prompt, build_prompt, per_chunk_cap
from quizbee.schemas import Difficulty, GenerationRequest


def test_general_knowledge_prompt():
    request = GenerationRequest(subject="Biology", difficulty="hard", desired_count=7)
    prompt = build_prompt(request)

    assert "Subject: Biology" in prompt
    assert "Difficulty: Hard" in prompt
    assert "Number of questions: 7" in prompt
    assert "Use general knowledge" in prompt
    assert '"questionText"' in prompt and '"options"' in prompt and '"correctAnswer"' in prompt
    assert "ONLY a JSON array" in prompt
    assert "for this part" not in prompt


def test_chunk_prompt_carries_part_marker_and_cap():
    request = GenerationRequest(
        subject="History", difficulty=Difficulty.EASY, desired_count=10, source_text="The Treaty of Westphalia..."
    )
    prompt = build_prompt(request, per_chunk_cap=4, part=2, total=3)

    assert "(part 2/3)" in prompt
    assert '"""The Treaty of Westphalia..."""' in prompt
    assert "Generate up to 4 questions for this part." in prompt
    assert "general knowledge" not in prompt


def test_prompt_is_deterministic_and_includes_focus():
    request = GenerationRequest(subject="Chemistry", desired_count=3, focus="acids and bases")
    assert build_prompt(request) == build_prompt(request)
    assert "Focus the questions on: acids and bases" in build_prompt(request)


def test_per_chunk_cap():
    assert per_chunk_cap(10, 3) == 4
    assert per_chunk_cap(1, 5) == 1
    assert per_chunk_cap(6, 1) == 6


def test_chat_prompt_includes_request_and_context():
    prompt = build_chat_prompt("make it harder", None, {"subject": "Math"})

    assert '- User request: "make it harder"' in prompt
    assert "Current quiz (optional, truncated): none" in prompt
    assert '"subject": "Math"' in prompt
    assert '"patches"' in prompt and '"modification"' in prompt
