"""Render the writing-analysis request sent to the scoring provider."""
from __future__ import annotations

from dataclasses import dataclass

from .errors import InvalidInput
from .types import count_words, round_score

SYSTEM_INSTRUCTION = (
    "You are an expert English language teacher and IELTS/TOEFL examiner who returns "
    "strict, compact JSON analyses of student writing."
)

OUTPUT_SCHEMA = """{
  "overallScore": integer 0-100,
  "testEquivalents": {
    "ielts": number 0-9 (one decimal place),
    "toefl": integer 0-120,
    "pte": integer 0-90,
    "custom": integer 0-100 (equal to overallScore)
  },
  "dimensionScores": {
    "grammar": integer 0-100,
    "vocabulary": integer 0-100,
    "coherence": integer 0-100,
    "taskResponse": integer 0-100
  },
  "grammarErrors": [
    {
      "category": "specific error category, e.g. Subject-Verb Agreement",
      "originalSpan": "exact text from the student's writing",
      "correctedSpan": "corrected version",
      "explanation": "clear explanation of the error"
    }
  ],
  "vocabularySuggestions": [
    {
      "word": "word from the student's text",
      "alternatives": ["better alternative", "another alternative"],
      "rationale": "why the change helps"
    }
  ],
  "feedback": {
    "grammar": {"comment": "string", "strengths": ["string"], "improvements": ["string"]},
    "vocabulary": {"comment": "string", "strengths": ["string"], "improvements": ["string"]},
    "coherence": {"comment": "string", "strengths": ["string"], "improvements": ["string"]},
    "taskResponse": {"comment": "string", "strengths": ["string"], "improvements": ["string"]}
  },
  "recommendations": ["4-5 actionable recommendations"]
}"""

LEVEL_EXPECTATIONS = """- Beginner (A1-A2): Basic sentences, simple vocabulary, clear meaning
- Intermediate (B1): Some complex sentences, varied vocabulary, good organization
- Upper-Intermediate (B2): Complex sentences, academic vocabulary, strong coherence
- Advanced (C1-C2): Sophisticated language, nuanced expression, excellent organization"""

GRAMMAR_ERROR_CATEGORIES = (
    'Subject-Verb Agreement',
    'Verb Tense',
    'Article Usage',
    'Preposition Usage',
    'Word Order',
    'Punctuation',
    'Spelling',
    'Plural/Singular Forms',
    'Modal Verbs',
    'Conditional Sentences',
    'Passive Voice',
    'Gerunds and Infinitives',
)


@dataclass(frozen=True)
class AnalysisPrompt:
    """A fully rendered provider request."""
    prompt: str
    system_instruction: str
    text: str
    prompt_question: str
    level: str
    word_count: int
    elapsed_minutes: int
    temperature: float = 0.3
    response_mime: str = 'application/json'


def build_analysis_prompt(text: str, prompt_question: str, level: str, elapsed_seconds: int) -> AnalysisPrompt:
    """Render the analysis request for one submission.

    Raises:
        InvalidInput: when the text is empty after trimming or the elapsed time is negative.
    """
    essay = (text or '').strip()
    if not essay:
        raise InvalidInput('Text is required for analysis.')
    if elapsed_seconds is None or elapsed_seconds < 0:
        raise InvalidInput('Elapsed time must be a non-negative number of seconds.')

    word_count = count_words(essay)
    elapsed_minutes = round_score(elapsed_seconds / 60)
    categories = ', '.join(GRAMMAR_ERROR_CATEGORIES)

    prompt = f"""Analyze this student's writing.

STUDENT INFORMATION:
- Question: "{prompt_question}"
- Student Level: {level}
- Time Spent: {elapsed_minutes} minutes
- Word Count: {word_count} words

TEXT TO ANALYZE:
"{essay}"

Return a single JSON object with EXACTLY this structure (no additional text, only valid JSON):

{OUTPUT_SCHEMA}

SCORING GUIDELINES:
- Grammar (25%): Accuracy, sentence structure, verb tenses, articles, prepositions
- Vocabulary (25%): Range, appropriateness, collocations, academic words
- Coherence (25%): Organization, linking words, paragraph structure, logical flow
- Task Response (25%): Relevance, completeness, argument development, examples
- overallScore is the mean of the four dimension scores; every exam equivalent is a
  linear scaling of overallScore onto that exam's range.

LEVEL-SPECIFIC EXPECTATIONS:
{LEVEL_EXPECTATIONS}

IMPORTANT:
1. Quote exact text from the student's writing in every grammar error.
2. Use these grammar categories where they fit: {categories}.
3. Score realistically for the student's level, time spent and word count.
4. Focus on how well the student answered the question asked.
5. Return ONLY valid JSON.
"""

    return AnalysisPrompt(
        prompt=prompt,
        system_instruction=SYSTEM_INSTRUCTION,
        text=essay,
        prompt_question=prompt_question,
        level=level,
        word_count=word_count,
        elapsed_minutes=elapsed_minutes,
    )
