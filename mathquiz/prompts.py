"""Prompt templates for question generation and the chat tutor.

Both prompts insist on Unicode math notation. Generated text is shown as plain
text, so LaTeX markup would reach the learner unrendered.
"""

import math
from typing import Dict

from .models import Difficulty

# Shared by generation and chat
UNICODE_MATH_RULES = """CRITICAL FORMATTING RULES (STRICTLY NO LATEX):
1. DO NOT use LaTeX syntax. NO '$', NO '\\frac', NO '\\sqrt', NO '\\cdot', NO '\\Rightarrow'.
2. USE UNICODE characters for all math symbols so the text reads as plain text:
   - Powers/Indices: superscripts/subscripts, e.g. x², x³, aⁿ, x₁, x₂ (NOT x^2, x_1)
   - Fractions: slash or Unicode fractions, e.g. 1/2, 3/4, ½, ⅓, (a+b)/c (NOT \\frac{a}{b})
   - Roots: √x, ∛x (NOT \\sqrt{x})
   - Multiplication: '×' or '·' (NOT *)
   - Arrows: '⇒' for implication, '⇔' for equivalence, '→' for arrow
   - Geometry: ∠A, ΔABC, ⊥, ||, π, °
   - Sets/Logic: ∈, ⊂, ∪, ∩, ∅, ∀, ∃
   - Comparison: ≠, ≤, ≥, ≈"""

DIFFICULTY_DEFINITIONS: Dict[Difficulty, str] = {
    Difficulty.RECOGNITION: "Direct recall, simple calculation (1 step).",
    Difficulty.UNDERSTANDING: "Multi-step problem, apply formula (2-3 steps).",
    Difficulty.APPLICATION: "Complex scenario, integrate multiple concepts (3+ steps).",
}

GENERATION_PROMPT_TEMPLATE = """Generate {count} [{difficulty}] level math questions for Grade {grade} on topic '{topic}' following the Vietnamese curriculum.

{formatting_rules}

3. CONTENT STRUCTURE:
   - Questions must be in Vietnamese.
   - Each question has EXACTLY 4 options, prefixed "A. ", "B. ", "C. ", "D. ".
   - Explanation must be step-by-step: one "- Step N: ..." line per step, then "=> ..." for the conclusion.
   - Example answer format: "a = 1, b = -2, c = 3" (clean text).
   - CORRECT ANSWER: a single letter, one of A, B, C, D.

4. ANSWER DISTRIBUTION (IMPORTANT):
   - Spread the correct answers evenly across A, B, C and D.
   - Avoid making 'A' the correct answer too often.
   - For {count} questions, aim for approximately {per_option} of each option.

Difficulty definitions ({difficulty_label} is the requested level):
{difficulty_definitions}

Output JSON format:
[
  {{
    "text": "Unicode question text...",
    "options": ["A. ...", "B. ...", "C. ...", "D. ..."],
    "correctAnswer": "B",
    "explanation": "- Step 1: ...\\n- Step 2: ...\\n=> Conclusion...",
    "difficulty": "{difficulty}"
  }}
]
"""

CHAT_SYSTEM_INSTRUCTION = f"""ROLE:
- You are "Thầy Toán AI", a friendly, patient and knowledgeable math tutor.
- Your job: help students understand lessons, solve problems from photos (OCR), and guide their thinking.
- Audience: students from grade 1 to grade 12. Reply in the student's language.

{UNICODE_MATH_RULES}

TEACHING RULES:
1. Understand the question and confirm it.
2. Socratic method: prompt the student to reason for themselves.
3. Explain step by step in simple terms.
4. Check understanding with a similar problem.
5. Stay positive and use emoji (👋😊💡🎯).

IMAGE WORKFLOW (OCR):
1. Extract the text and formulas.
2. If the image is blurry, ask for a new photo.
3. If it is readable, answer with this structure:
   ## 📷 Recognized problem: ...
   ## ❓ Confirmation: ...
   ## 📖 Solution guide: ...
   ## 💡 Notes: ...
"""

# Sent when the learner attaches an image without typing anything
DEFAULT_CHAT_MESSAGE = "Hãy giải bài này giúp em."


def build_generation_prompt(
    difficulty: Difficulty, count: int, grade: int, topic: str
) -> str:
    """Build the prompt for one difficulty tier.

    Args:
        difficulty: Tier to generate
        count: Number of questions requested
        grade: School grade (1-12)
        topic: Curriculum or custom topic

    Returns:
        The prompt text
    """
    definitions = "\n".join(
        f"- {d.label} ({d.value.capitalize()}): {DIFFICULTY_DEFINITIONS[d]}"
        for d in Difficulty
    )
    return GENERATION_PROMPT_TEMPLATE.format(
        count=count,
        difficulty=difficulty.value,
        difficulty_label=difficulty.label,
        grade=grade,
        topic=topic,
        formatting_rules=UNICODE_MATH_RULES,
        per_option=math.ceil(count / 4),
        difficulty_definitions=definitions,
    )
