from typing import List, Optional, Sequence


DIFFICULTY_GUIDANCE = {
    "beginner": """
For BEGINNER level:
- Focus on basic concepts and terminology
- Cover the fundamental features of the core services
- Include basic best practices and service selection criteria
""",
    "intermediate": """
For INTERMEDIATE level:
- Focus on implementation details and configuration options
- Cover integration patterns and architectural considerations
- Include cost optimization and performance tuning concepts
""",
    "advanced": """
For ADVANCED level:
- Focus on complex scenarios and edge cases
- Cover advanced architectural patterns and troubleshooting
- Include deep technical details and optimization strategies
""",
}


def build_single_question_prompt(
    difficulty: str,
    subject: str,
    domains: Sequence[str],
    exclude_ids: Optional[List[str]] = None,
    avoid_topics: Optional[List[str]] = None,
    topic: Optional[str] = None
) -> str:
    """
    Build a prompt for generating a single multiple-choice question.

    Args:
        difficulty: The difficulty level ("beginner", "intermediate" or "advanced")
        subject: Subject matter the quiz covers
        domains: Domain labels the model must choose from
        exclude_ids: Identifiers of questions already asked in this session
        avoid_topics: Topics already covered in this session
        topic: Optional topic to focus the question on

    Returns:
        A formatted prompt string for the LLM
    """
    domain_list = ", ".join(domains)

    prompt = f"""You are an expert {subject} instructor. Generate EXACTLY ONE multiple-choice quiz question.

Requirements:
- Difficulty level: {difficulty}
- Question must be relevant to the {subject}
- Provide exactly 4 answer options
- Only ONE option should be correct
- Include a detailed explanation for why the correct answer is right
- Focus on practical, real-world scenarios
"""

    prompt += DIFFICULTY_GUIDANCE.get(difficulty, "")

    prompt += f"""
Required JSON format (return THIS EXACT STRUCTURE with no other text):
{{
  "question": "Your question here",
  "options": ["Option A", "Option B", "Option C", "Option D"],
  "correctAnswer": 0,
  "explanation": "Why the correct answer is right and why the other options are wrong",
  "topic": "Main service or concept covered",
  "domain": "One of: {domain_list}"
}}

CRITICAL JSON FORMATTING RULES:
- "correctAnswer" must be the index (0-3) of the correct option in the "options" array
- Vary the position of the correct answer, do not always put it first
- In string values use \\n for line breaks, NOT literal newlines
- Escape quotes as \\" and backslashes as \\\\
- Do not include control characters or unescaped special characters in string values
- Do NOT wrap the JSON in ```json``` or any other formatting
"""

    avoid = []
    if exclude_ids:
        avoid.append(f"previously asked question ids: {', '.join(exclude_ids)}")
    if avoid_topics:
        unique_topics = list(dict.fromkeys(avoid_topics))
        avoid.append(f"previously asked topics: {', '.join(unique_topics)}")
    if avoid:
        prompt += (
            "\nAvoid creating questions similar to these "
            + "; ".join(avoid)
            + "\n"
        )

    if topic:
        prompt += f"\nFocus specifically on: {topic}\n"

    prompt += "\nRETURN ONLY THE JSON OBJECT. NO OTHER TEXT."

    return prompt
