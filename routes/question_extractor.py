# routes/question_extractor.py
import base64
import json
import logging
from typing import List

import openai
from pydantic import ValidationError

import config
from models.question import OPTION_COUNT, QuestionBase

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

EXTRACTION_PROMPT = (
    "Extract every multiple-choice question from the attached PDF. "
    "For each question return the subject, the topic, the question text, exactly four options in order, "
    "the zero-based index of the correct option and a short explanation (empty string if none is given). "
    "Keep superscripts as ^{...}, subscripts as _{...} and fractions as [a/b], or use $...$ for LaTeX. "
    "Do not invent questions that are not in the document."
)

QUESTION_SCHEMA = {
    "type": "object",
    "properties": {
        "questions": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "subject": {"type": "string"},
                    "topic": {"type": "string"},
                    "text": {"type": "string"},
                    "options": {
                        "type": "array",
                        "items": {"type": "string"},
                        "minItems": OPTION_COUNT,
                        "maxItems": OPTION_COUNT,
                    },
                    "correctAnswerIndex": {"type": "integer"},
                    "explanation": {"type": "string"},
                },
                "required": ["subject", "topic", "text", "options", "correctAnswerIndex", "explanation"],
                "additionalProperties": False,
            },
        }
    },
    "required": ["questions"],
    "additionalProperties": False,
}


class ExtractionError(Exception):
    pass


def get_openai_client():
    if not config.OPENAI_API_KEY:
        logger.error("OpenAI API key not configured")
        raise ExtractionError("OpenAI API key not configured")
    return openai.AsyncOpenAI(api_key=config.OPENAI_API_KEY)


def parse_extraction(raw_content: str) -> List[QuestionBase]:
    """Validate the model output. Items that do not fit the question shape are dropped."""
    try:
        payload = json.loads(raw_content or "")
    except json.JSONDecodeError as e:
        raise ExtractionError(f"AI response is not valid JSON: {str(e)}") from e

    items = payload.get("questions") if isinstance(payload, dict) else None
    if not isinstance(items, list):
        raise ExtractionError("AI response missing 'questions' array")

    staged = []
    for idx, item in enumerate(items):
        try:
            staged.append(QuestionBase.model_validate(item))
        except ValidationError as e:
            logger.warning(f"Dropping extracted question {idx}: {e.errors()}")
    if not staged:
        raise ExtractionError("No valid questions found in the document")
    return staged


async def extract_questions(pdf_bytes: bytes, filename: str = "questions.pdf") -> List[QuestionBase]:
    """Send a PDF to the extraction model once and return the staged questions."""
    if not pdf_bytes:
        raise ExtractionError("Uploaded file is empty")

    client = get_openai_client()
    encoded = base64.b64encode(pdf_bytes).decode("ascii")
    logger.info(f"Extracting questions from {filename} ({len(pdf_bytes)} bytes) with {config.OPENAI_EXTRACTION_MODEL}")

    try:
        response = await client.chat.completions.create(
            model=config.OPENAI_EXTRACTION_MODEL,
            messages=[{
                "role": "user",
                "content": [
                    {"type": "text", "text": EXTRACTION_PROMPT},
                    {"type": "file", "file": {"filename": filename, "file_data": f"data:application/pdf;base64,{encoded}"}},
                ],
            }],
            response_format={
                "type": "json_schema",
                "json_schema": {"name": "extracted_questions", "strict": True, "schema": QUESTION_SCHEMA},
            },
        )
    except openai.OpenAIError as e:
        logger.error(f"OpenAI API error: {str(e)}")
        raise ExtractionError(f"OpenAI API error: {str(e)}") from e

    if not response.choices:
        raise ExtractionError("AI response missing 'choices' field")
    raw_content = response.choices[0].message.content
    logger.info(f"Raw extraction content length: {len(raw_content or '')}")
    return parse_extraction(raw_content)
