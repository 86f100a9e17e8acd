"""
Prompt construction for every gateway operation.

One prompt set is shared by all providers; adapters only differ in how the
chat model is built. Wording is Spanish by default (INTERVIEW_LANGUAGE).
"""

from typing import List

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage

from src.assessment.phases import SessionPhase
from src.assessment.scoring import riasec_code, top_types
from src.assessment.types import CareerCatalogEntry, ConversationMessage, ProviderRequest
from src.common.config import Config
from src.common.llm_config import Operation

# ===== FALLBACK TEXT =====

GREETING_MESSAGE = (
    "¡Hola! Soy ARIA, tu asistente de orientación vocacional. Estoy aquí para ayudarte "
    "a descubrir qué carrera universitaria encaja contigo. ¿Qué tipo de actividades "
    "realmente disfrutas hacer?"
)

FALLBACK_QUESTION = "¿Qué tipo de actividades disfrutas más?"

CLARIFICATION_MESSAGE = (
    "Disculpa, tuve un problema procesando tu respuesta. ¿Podrías contarme un poco más?"
)

SESSION_START_INSTRUCTION = (
    "Inicia la sesión: saluda al estudiante, explica en una frase cómo funciona la entrevista "
    "y haz la primera pregunta abierta sobre sus intereses."
)

REALITY_CHECK_START_INSTRUCTION = (
    "Inicia la verificación de realidad: elige la carrera más compatible del estudiante y haz "
    "la primera pregunta discriminatoria sobre sus exigencias reales. Usa nextPhase \"reality_check\"."
)

CLOSING_SUMMARY_INSTRUCTION = (
    "Hemos terminado la verificación de realidad. Genera ahora el resumen final: "
    "recuerda el perfil RIASEC del estudiante, confirma las carreras más compatibles "
    "(usa solo IDs de la lista) y despídete. Usa nextPhase \"complete\"."
)

# ===== PHASE GUIDANCE =====

PHASE_GUIDANCE = {
    SessionPhase.GREETING: "Preséntate brevemente y haz una primera pregunta abierta sobre sus intereses.",
    SessionPhase.EXPLORATION: (
        "Descubre el perfil vocacional con UNA pregunta por mensaje: intereses, habilidades, "
        "ambiente de trabajo preferido. Después de 4-6 intercambios propone pasar a las carreras "
        "(nextPhase \"career_matching\")."
    ),
    SessionPhase.CAREER_MATCHING: (
        "Presenta las carreras más compatibles de la lista y explica por qué encajan con su "
        "perfil RIASEC. Cuando el estudiante quiera profundizar usa nextPhase \"reality_check\"."
    ),
    SessionPhase.REALITY_CHECK: (
        "Haz preguntas discriminatorias sobre las exigencias reales de las carreras recomendadas "
        "(físicas, emocionales, económicas, de tiempo, sociales, educativas, de ambiente). "
        "Si el estudiante pide ver resultados finales usa nextPhase \"complete\"; si aún duda usa "
        "intent \"completion_check\"."
    ),
    SessionPhase.FINAL_RESULTS: "Resume el perfil y las carreras finales recomendadas.",
    SessionPhase.COMPLETE: "La entrevista terminó. Despídete cordialmente.",
}

RESPONSE_FORMAT = """Responde SIEMPRE en formato JSON con esta estructura:
{
  "message": "respuesta conversacional",
  "intent": "question|clarification|assessment|recommendation|completion_check|farewell",
  "suggestedFollowUp": ["pregunta1", "pregunta2"],
  "riasecAssessment": {
    "scores": {"R": 0-100, "I": 0-100, "A": 0-100, "S": 0-100, "E": 0-100, "C": 0-100},
    "confidence": 0-100,
    "reasoning": "explicación"
  },
  "careerSuggestions": [{"careerId": "ID EXACTO de la lista", "name": "nombre EXACTO", "confidence": 0-100, "reasoning": "por qué encaja"}],
  "nextPhase": "greeting|exploration|career_matching|reality_check|final_results|complete"
}"""

RIASEC_ASSESSMENT_PROMPT = """Analiza las respuestas del estudiante y asigna un puntaje RIASEC de 0 a 100 para cada tipo:
- Realistic (R): trabajo con herramientas, manos, actividades físicas
- Investigative (I): investigación, análisis, resolución de problemas
- Artistic (A): creatividad, expresión artística, originalidad
- Social (S): ayudar, enseñar, trabajar con personas
- Enterprising (E): liderazgo, ventas, persuasión
- Conventional (C): organización, datos, estructuras

Responde SOLO con JSON válido:
{"scores": {"R": 0, "I": 0, "A": 0, "S": 0, "E": 0, "C": 0}, "confidence": 0-100, "reasoning": "explicación breve"}"""

CONTEXTUAL_QUESTION_PROMPT = """Eres ARIA, asistente de orientación vocacional. Genera UNA pregunta conversacional natural.

CONTEXTO:
- Fase: {phase}
- Perfil: {profile}

Responde solo con la pregunta en {language}, sin comillas ni explicaciones."""

DISCRIMINATING_QUESTIONS_PROMPT = """Eres ARIA, asistente de orientación vocacional. El estudiante considera la carrera:

{career}

PERFIL DEL ESTUDIANTE: {profile}

Genera entre 3 y 5 preguntas que verifiquen si el estudiante está preparado para las exigencias
reales de esta carrera. Responde SOLO con un arreglo JSON:
[{{"question": "texto", "careerAspect": "physical|emotional|economic|time_commitment|social|educational|environmental", "importance": 1-5, "followUpEnabled": true}}]"""


# ===== BUILDERS =====

def format_career(career: CareerCatalogEntry, description_chars: int = 180) -> str:
    """One catalog line: exact id, name, short description and RIASEC code."""
    code = riasec_code(top_types(career.riasec_vector, 3))
    description = career.description[:description_chars]
    return f"- ID: {career.id} | {career.name}: {description} (RIASEC: {code})"


def _history_messages(history: List[ConversationMessage]) -> List[BaseMessage]:
    messages: List[BaseMessage] = []
    for message in history:
        if message.role == "user":
            messages.append(HumanMessage(content=message.content))
        elif message.role == "assistant":
            messages.append(AIMessage(content=message.content))
        else:
            messages.append(SystemMessage(content=message.content))
    return messages


def conversation_system_prompt(request: ProviderRequest, language: str) -> str:
    context = request.context
    catalog = "\n".join(format_career(c) for c in context.careers) or "(catálogo vacío)"
    return f"""Eres ARIA, un asistente de orientación vocacional inteligente y conversacional.
PERSONALIDAD: cálido, empático, profesional y natural. Habla en {language}.

FASE ACTUAL: {context.phase.value}
OBJETIVO DE LA FASE: {PHASE_GUIDANCE.get(context.phase, "")}

PERFIL ACTUAL: {context.user_profile or "sin datos todavía"}

CARRERAS DISPONIBLES (USA IDs EXACTOS, nunca inventes carreras):
{catalog}

{RESPONSE_FORMAT}"""


def build_messages(operation: Operation, request: ProviderRequest, language: str = None) -> List[BaseMessage]:
    """
    Build the chat messages for one gateway operation.

    Args:
        operation: Gateway operation
        request: History plus context
        language: Interview language (defaults to Config.INTERVIEW_LANGUAGE)

    Returns:
        LangChain messages ready for ainvoke()
    """
    language = language or Config.INTERVIEW_LANGUAGE
    operation = Operation(operation)
    context = request.context

    if operation is Operation.CONVERSATION_TURN:
        messages: List[BaseMessage] = [SystemMessage(content=conversation_system_prompt(request, language))]
        messages.extend(_history_messages(request.messages))
        if context.instruction:
            messages.append(HumanMessage(content=context.instruction))
        return messages

    if operation is Operation.RIASEC_ASSESSMENT:
        answers = "\n".join(m.content for m in request.messages if m.role == "user")
        return [
            SystemMessage(content=RIASEC_ASSESSMENT_PROMPT),
            HumanMessage(content=answers or "(sin respuestas)"),
        ]

    if operation is Operation.CONTEXTUAL_QUESTION:
        prompt = CONTEXTUAL_QUESTION_PROMPT.format(
            phase=context.phase.value,
            profile=context.user_profile or "sin datos todavía",
            language=language,
        )
        recent = _history_messages(request.messages[-6:])
        return [SystemMessage(content=prompt), *recent, HumanMessage(content="Genera la siguiente pregunta.")]

    if operation is Operation.DISCRIMINATING_QUESTIONS:
        if context.target_career is None:
            raise ValueError("discriminating_questions requires a target career")
        career = context.target_career
        details = format_career(career, description_chars=400)
        if career.work_environment:
            details += f"\n  Ambiente de trabajo: {', '.join(career.work_environment)}"
        if career.key_skills:
            details += f"\n  Habilidades clave: {', '.join(career.key_skills)}"
        if career.duration_years is not None:
            details += f"\n  Duración: {career.duration_years:g} años"
        prompt = DISCRIMINATING_QUESTIONS_PROMPT.format(
            career=details,
            profile=context.user_profile or "sin datos todavía",
        )
        return [SystemMessage(content=prompt), HumanMessage(content="Genera las preguntas.")]

    raise ValueError(f"Unsupported operation: {operation}")
