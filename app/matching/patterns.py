"""
Tablas de patrones en español para el dominio de alquileres de media estancia.

El orden de todas las listas es significativo: la primera coincidencia gana.
"""
import re
from enum import Enum
from typing import List, Pattern, Tuple

from app.matching.models import ConversationFlowRule


class GuidelineCategory(str, Enum):
    VENTAS = "ventas"
    GESTION = "gestion"
    GENERAL = "general"
    GREETINGS = "greetings"
    SUPPORT = "support"
    SALES = "sales"
    PRIORITY = "priority"
    TECHNICAL = "technical"


# (categoría, patrones): ventas tiene prioridad sobre gestión y gestión sobre general
CATEGORY_PATTERNS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    (GuidelineCategory.VENTAS.value, (
        "precio", "costo", "cuánto cuesta", "tarifa", "alquiler", "disponible",
        "zona", "ubicación", "barrio", "ver piso", "visita", "reservar",
    )),
    (GuidelineCategory.GESTION.value, (
        "avería", "problema", "roto", "no funciona", "arreglar", "técnico",
        "pago", "factura", "recibo", "agua", "luz", "calefacción", "emergencia",
    )),
    (GuidelineCategory.GENERAL.value, (
        "hola", "buenos días", "buenas tardes", "gracias", "adiós", "información",
    )),
)

CONVERSATION_FLOWS: Tuple[ConversationFlowRule, ...] = (
    ConversationFlowRule(GuidelineCategory.VENTAS.value, GuidelineCategory.VENTAS.value, 20),    # continuidad en la venta
    ConversationFlowRule(GuidelineCategory.GENERAL.value, GuidelineCategory.VENTAS.value, 15),   # de saludo a venta
    ConversationFlowRule(GuidelineCategory.GESTION.value, GuidelineCategory.GESTION.value, 20),  # continuidad en soporte
)

CATEGORY_CONTINUITY_BONUS = 15.0

# (patrón, puntaje). Sin grupo de captura el patrón nunca suma: no hay palabra clave que buscar.
# re.ASCII: la palabra capturada se corta en la primera letra acentuada ("habitación" → "habitaci").
SPANISH_VERB_PATTERNS: List[Tuple[Pattern[str], float]] = [
    # Consulta
    (re.compile(r"pregunta?\s+(?:sobre\s+|por\s+)?(\w+)", re.ASCII), 50),
    (re.compile(r"quiere?\s+(?:saber\s+|conocer\s+)?(\w+)", re.ASCII), 45),
    (re.compile(r"busca?\s+(\w+)", re.ASCII), 45),
    (re.compile(r"interesa?\s+(\w+)", re.ASCII), 45),
    # Reporte / problema
    (re.compile(r"reporta?\s+(\w+)", re.ASCII), 50),
    (re.compile(r"tiene?\s+(?:un\s+)?problema", re.ASCII), 50),
    (re.compile(r"hay\s+(?:un\s+)?(\w+)", re.ASCII), 45),
    (re.compile(r"no\s+funciona", re.ASCII), 50),
    # Acción
    (re.compile(r"quiere?\s+(?:ver\s+|visitar\s+)?(\w+)", re.ASCII), 45),
    (re.compile(r"solicita?\s+(\w+)", re.ASCII), 45),
    (re.compile(r"pide?\s+(\w+)", re.ASCII), 45),
    # Generales
    (re.compile(r"menciona?\s+(\w+)", re.ASCII), 40),
    (re.compile(r"dice?\s+(\w+)", re.ASCII), 40),
    (re.compile(r"habla?\s+(?:de\s+|sobre\s+)?(\w+)", re.ASCII), 40),
]

# Palabra clave de la condición → sinónimos que puede usar el usuario
SPANISH_ACTION_WORDS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("saluda", ("hola", "buenos días", "buenas tardes", "buenas noches", "buenas", "saludos")),
    ("saludo", ("hola", "buenos días", "buenas tardes", "buenas noches", "buenas")),
    ("precio", ("precio", "costo", "cuánto cuesta", "tarifa", "valor", "cuesta", "costar", "vale", "cuánto")),
    ("disponible", ("disponible", "disponibilidad", "libre", "alquilar", "alquiler", "busco", "buscando")),
    ("alquileres", ("alquiler", "alquilar", "piso", "estudio", "apartamento", "habitación")),
    ("ubicacion", ("zona", "ubicación", "barrio", "dónde", "dirección", "cerca", "metro", "centro")),
    ("visita", ("ver", "visitar", "visita", "conocer", "enseñar", "mostrar")),
    ("reserva", ("reservar", "reserva", "apartar", "contratar", "alquilar")),
    ("incluye", ("incluye", "incluido", "servicios", "qué tiene", "qué trae")),
    ("requisitos", ("requisitos", "documentos", "documentación", "necesito", "piden")),
    ("avería", ("avería", "roto", "no funciona", "arreglar", "falla", "daño", "estropeado", "lavadora", "nevera")),
    ("reporta", ("reportar", "informar", "avisar", "decir", "comentar")),
    ("problemas", ("problema", "problemas", "fallo", "mal", "error")),
    ("agua", ("agua", "agua caliente", "agua fría", "grifo", "ducha")),
    ("luz", ("luz", "electricidad", "corriente", "bombilla", "interruptor")),
    ("calefacción", ("calefacción", "calor", "radiador", "frío")),
    ("urgente", ("urgente", "emergencia", "urgencia", "ahora", "inmediatamente", "rápido")),
    ("pago", ("pago", "pagar", "factura", "recibo", "cuota", "mensualidad")),
    ("salida", ("salida", "check-out", "irme", "dejar", "terminar contrato", "fin contrato")),
    ("renovar", ("renovar", "extender", "continuar", "quedarme más", "ampliar")),
)

SYNONYM_BONUS = 40.0

SPANISH_COMMON_WORDS = frozenset((
    "el", "la", "los", "las", "un", "una", "es", "son", "de", "del",
    "al", "por", "para", "con", "sin", "sobre", "entre", "y", "o",
    "que", "en", "a", "se",
))

# Limpieza de la redacción de las condiciones; se aplican en orden
SPANISH_CONDITION_CLEANERS: List[Tuple[Pattern[str], str]] = [
    (re.compile(r"cuando\s+el\s+usuario\s+"), ""),
    (re.compile(r"cuando\s+usuario\s+"), ""),
    (re.compile(r"cuando\s+un\s+inquilino\s+"), ""),
    (re.compile(r"cuando\s+alguien\s+"), ""),
    (re.compile(r"cuando\s+hay\s+"), "hay "),
    (re.compile(r"cuando\s+"), ""),
    (re.compile(r"\s+"), " "),
]

CONTAINMENT_BONUS = 70.0
WORD_OVERLAP_WEIGHT = 30.0
PRIORITY_WEIGHT = 0.5
PARTIAL_MATCH_MIN_LENGTH = 3
