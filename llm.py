"""LLM access for consultation chat, wellness plans and image analysis.

All calls go through Groq's OpenAI-compatible ``/chat/completions`` endpoint.
With ``LLM_PROVIDER=mock`` canned responses are returned instead, which keeps
the app usable without an API key.
"""
import base64
import json
import logging
import re

import requests

import config

logger = logging.getLogger(__name__)

GENERIC_ERROR = "Failed to get a response from the AI."

CONSULTATION_SYSTEM_PROMPT = """You are VitaShifa, an AI health companion. Provide helpful, accurate medical information in a clear, conversational, and empathetic tone.

Your approach:
- Give direct, knowledgeable answers about health topics, symptoms, conditions, and general wellness
- Explain medical concepts clearly using simple language
- For complex topics, use structured formats like bullet points or sections when helpful
- You can mention specific medications, treatments, and medical procedures when relevant to the question
- Provide actionable advice and recommendations based on medical knowledge

Formatting:
- Use newlines to separate paragraphs
- Use hyphens for lists
- No asterisks for formatting"""

WELLNESS_SYSTEM_PROMPT = (
    "You are VitaShifa's wellness planning expert. "
    "Create personalized, actionable health plans in JSON format."
)

LANGUAGE_PROMPTS = {
    "en": "Respond in English.",
    "ar": "Respond in Arabic (العربية). Use proper Arabic grammar and wellness terminology.",
    "es": "Respond in Spanish (Español). Use proper Spanish grammar and wellness terminology.",
    "fr": "Respond in French (Français). Use proper French grammar and wellness terminology.",
    "ja": "Respond in Japanese (日本語). Use proper Japanese grammar and wellness terminology.",
    "id": "Respond in Indonesian (Bahasa Indonesia). Use proper Indonesian grammar and wellness terminology.",
    "hi": "Respond in Hindi (हिन्दी). Use proper Hindi grammar and wellness terminology.",
}

PLAN_SECTIONS = ("nutrition_plan", "fitness_plan", "mindfulness_plan", "weekly_schedule")

DIAGNOSIS_DISCLAIMER = (
    "This AI analysis is for informational purposes only and should not replace "
    "professional medical diagnosis."
)
URGENCY_LEVELS = ("low", "medium", "high")

DIAGNOSIS_PROMPT = """Look at this medical image (for example a skin condition, wound, rash or scan) and describe what you observe.

Return JSON with exactly these keys:
- "confidence": integer 0-100, how confident you are in the observations
- "findings": array of 2-4 short strings describing what is visible
- "recommendations": array of 2-4 short next steps for the patient
- "urgency": one of "low", "medium", "high"

Do not name a definitive diagnosis. Always recommend professional evaluation when in doubt."""


class LLMError(RuntimeError):
    pass


def _mock_reply(messages: list, json_mode: bool) -> str:
    if not json_mode:
        last = next((m["content"] for m in reversed(messages) if m["role"] == "user"), "")
        if isinstance(last, list):
            last = ""
        return (
            "This is a mock response from VitaShifa.\n"
            f"You asked: {last[:200]}\n"
            "- Rest and stay hydrated\n"
            "- Consult a healthcare professional if symptoms persist"
        )
    day_names = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]

    def section(title):
        return {
            "title": title,
            "summary": "A mock plan section for testing without an API key.",
            "recommendations": [
                {"tip": "Start small", "explanation": "Small changes are easier to keep."},
                {"tip": "Be consistent", "explanation": "Routine matters more than intensity."},
                {"tip": "Track progress", "explanation": "Logging keeps you accountable."},
            ],
        }

    return json.dumps({
        "nutrition_plan": section("Eat Well"),
        "fitness_plan": section("Move More"),
        "mindfulness_plan": section("Stay Calm"),
        "weekly_schedule": {
            "title": "Your Sample Week at a Glance",
            "summary": "A balanced week.",
            "schedule": [
                {"day": d, "fitness": "30 min walk", "nutrition": "Vegetables at every meal",
                 "mindfulness": "10 min breathing"}
                for d in day_names
            ],
        },
    })


def _mock_diagnosis() -> dict:
    return {
        "confidence": 85,
        "findings": [
            "No obvious abnormalities detected",
            "Image quality is suitable for analysis",
            "Recommend professional medical evaluation for confirmation",
        ],
        "recommendations": [
            "Consult with a healthcare professional",
            "Consider follow-up imaging if symptoms persist",
            "Monitor for any changes in symptoms",
        ],
        "urgency": "low",
    }


def chat_completion(
    messages: list,
    model: str = "",
    temperature: float = 0.7,
    max_tokens: int = 2048,
    json_mode: bool = False,
) -> str:
    """Send a chat completion request and return the assistant text."""
    if config.LLM_PROVIDER == "mock":
        return _mock_reply(messages, json_mode)
    if not config.GROQ_API_KEY:
        logger.warning("GROQ_API_KEY is not set; LLM request not attempted")
        raise LLMError("LLM API key is not configured")
    body = {
        "model": model or config.CHAT_MODEL,
        "messages": messages,
        "temperature": temperature,
        "max_tokens": max_tokens,
    }
    if json_mode:
        body["response_format"] = {"type": "json_object"}
    try:
        resp = requests.post(
            f"{config.GROQ_BASE_URL}/chat/completions",
            headers={"Authorization": f"Bearer {config.GROQ_API_KEY}"},
            json=body,
            timeout=config.LLM_TIMEOUT_SECONDS,
        )
    except requests.RequestException as exc:
        raise LLMError(f"LLM request failed: {exc}") from exc
    if not 200 <= resp.status_code < 300:
        logger.warning(
            "LLM request failed with status %s: %s",
            resp.status_code,
            (resp.text or "")[:200],
        )
        raise LLMError(f"LLM returned status {resp.status_code}")
    try:
        return resp.json()["choices"][0]["message"]["content"] or ""
    except (ValueError, KeyError, IndexError) as exc:
        raise LLMError("Malformed LLM response") from exc


def parse_json_reply(text: str) -> dict:
    cleaned = re.sub(r"```(?:json)?", "", text or "").strip()
    try:
        data = json.loads(cleaned)
    except ValueError as exc:
        raise LLMError("LLM reply is not valid JSON") from exc
    if not isinstance(data, dict):
        raise LLMError("LLM reply is not a JSON object")
    return data


def consultation_reply(history: list, message: str) -> str:
    """history: stored messages as ``{"sender": "user"|"ai", "content": ...}``."""
    messages = [{"role": "system", "content": CONSULTATION_SYSTEM_PROMPT}]
    for m in history:
        role = "user" if m.get("sender") == "user" else "assistant"
        messages.append({"role": role, "content": m.get("content", "")})
    messages.append({"role": "user", "content": message})
    return chat_completion(messages, temperature=0.8, max_tokens=2048)


def _join(values, empty: str = "") -> str:
    return ", ".join(str(v) for v in values or []) or empty


def build_wellness_prompt(form: dict, language: str) -> str:
    lang_instruction = LANGUAGE_PROMPTS.get(language, LANGUAGE_PROMPTS["en"])
    p = form.get("personal_info") or {}
    life = form.get("lifestyle") or {}
    med = form.get("medical_history") or {}
    pref = form.get("preferences") or {}
    return f"""Create a personalized wellness plan based on this profile. {lang_instruction}

Age: {p.get("age", "")}, Gender: {p.get("gender", "")}, Height: {p.get("height", "")}cm, Weight: {p.get("weight", "")}kg, Activity: {p.get("activity_level", "")}
Goals: {_join(form.get("health_goals"))}
Sleep: {life.get("sleep_hours", "")}hrs, Stress: {life.get("stress_level", "")}, Smoking: {life.get("smoking_status", "")}, Alcohol: {life.get("alcohol_consumption", "")}
Conditions: {_join(med.get("conditions"), "none")}
Diet: {pref.get("diet_type", "")}, Exercise preferences: {_join(pref.get("exercise_preferences"))}, Time: {pref.get("time_availability", "")}

Generate JSON with these keys (all content in the requested language):

1. "nutrition_plan", "fitness_plan", "mindfulness_plan": Each has:
   - title: catchy title
   - summary: 1-2 sentences
   - recommendations: array of objects with "tip" and "explanation" (3-4 items each)

2. "weekly_schedule":
   - title: "Your Sample Week at a Glance" (translated)
   - summary: brief sentence
   - schedule: 7 day objects (Monday-Sunday, translated) each with "day", "fitness", "nutrition", "mindfulness"."""


def generate_wellness_plan(form: dict, language: str = "en") -> dict:
    text = chat_completion(
        [
            {"role": "system", "content": WELLNESS_SYSTEM_PROMPT},
            {"role": "user", "content": build_wellness_prompt(form, language)},
        ],
        temperature=0.7,
        max_tokens=4096,
        json_mode=True,
    )
    plan = parse_json_reply(text)
    missing = [k for k in PLAN_SECTIONS if k not in plan]
    if missing:
        raise LLMError(f"Wellness plan is missing sections: {missing}")
    return plan


def _string_list(value) -> list:
    if not isinstance(value, list):
        return []
    return [str(v) for v in value if str(v).strip()]


def _normalize_diagnosis(raw: dict) -> dict:
    try:
        confidence = int(raw.get("confidence", 0))
    except (TypeError, ValueError):
        confidence = 0
    urgency = str(raw.get("urgency", "")).lower()
    return {
        "confidence": max(0, min(100, confidence)),
        "findings": _string_list(raw.get("findings")),
        "recommendations": _string_list(raw.get("recommendations")),
        "urgency": urgency if urgency in URGENCY_LEVELS else "medium",
        "disclaimer": DIAGNOSIS_DISCLAIMER,
    }


def analyze_image(data: bytes, media_type: str) -> dict:
    if config.LLM_PROVIDER == "mock":
        return _normalize_diagnosis(_mock_diagnosis())
    data_url = f"data:{media_type};base64,{base64.b64encode(data).decode('ascii')}"
    text = chat_completion(
        [{
            "role": "user",
            "content": [
                {"type": "text", "text": DIAGNOSIS_PROMPT},
                {"type": "image_url", "image_url": {"url": data_url}},
            ],
        }],
        model=config.VISION_MODEL,
        temperature=0.2,
        max_tokens=1024,
        json_mode=True,
    )
    return _normalize_diagnosis(parse_json_reply(text))
