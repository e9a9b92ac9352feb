from typing import Dict, List, Sequence

from app.matching.patterns import GuidelineCategory
from app.models.guideline import Guideline

SYSTEM_PROMPT = """Eres el asistente virtual de MidHome Rentals, una empresa especializada en alquileres de media estancia (1-6 meses) en las mejores zonas de la ciudad.

Tu rol principal tiene dos objetivos:
1. VENDER: Convertir interesados en inquilinos, destacando nuestras ventajas y cerrando reservas
2. GESTIONAR: Dar soporte eficiente a inquilinos actuales durante su estancia

Características de comunicación:
- Responde siempre en español
- Sé profesional pero cercano y amigable
- Usa un tono entusiasta para ventas, resolutivo para soporte
- Personaliza las respuestas según el contexto
- Si no puedes resolver algo, indica el siguiente paso claramente

Información de la empresa:
- Horario atención: Lunes a Viernes 9:00-18:00
- Teléfono emergencias 24h: 600-123-456
- Email: soporte@midsomerentals.es
- Todos los pisos incluyen: WiFi fibra, suministros, limpieza semanal, cocina equipada, mantenimiento"""

# Orden de las secciones en el prompt
GUIDELINE_TITLES = (
    (GuidelineCategory.VENTAS.value, "GUIDELINES DE VENTA:"),
    (GuidelineCategory.GESTION.value, "GUIDELINES DE GESTIÓN:"),
    (GuidelineCategory.GENERAL.value, "GUIDELINES GENERALES:"),
)


def build_guideline_prompt(base_prompt: str, guideline_instructions: str) -> str:
    if not guideline_instructions:
        return base_prompt

    return f"""{base_prompt}

Aplica las siguientes guidelines según el contexto:

{guideline_instructions}

Recuerda: Integra estas guidelines de forma natural en tus respuestas, sin mencionarlas explícitamente."""


def _capitalize(text: str) -> str:
    return text[:1].upper() + text[1:]


def build_system_prompt(guidelines: Sequence[Guideline], base_prompt: str = SYSTEM_PROMPT) -> str:
    if not guidelines:
        return base_prompt

    by_category: Dict[str, List[Guideline]] = {}
    for g in guidelines:
        by_category.setdefault(g.category or GuidelineCategory.GENERAL.value, []).append(g)

    sections = []
    for category, title in GUIDELINE_TITLES:
        items = by_category.get(category)
        if not items:
            continue
        lines = [title] + [
            f"{i}. {_capitalize(g.condition)}: {g.action}"
            for i, g in enumerate(items, start=1)
        ]
        sections.append("\n".join(lines))

    return build_guideline_prompt(base_prompt, "\n\n".join(sections))
