"""Prompt templates for enrichment and auto-fix calls.

Prompts are in French: the records they produce are read by French
community pharmacists, and the models answer in the language they are
addressed in.  Every template asks for a single JSON object so the
providers can run in forced JSON mode.
"""

import json
from collections.abc import Iterable, Mapping
from typing import Any

# ---------------------------------------------------------------------------
# Shared product_data layout
# ---------------------------------------------------------------------------

_PRODUCT_DATA_LAYOUT = """\
{
  "schema_version": "1.0",
  "product_identity": {
    "commercial_name": "string",
    "active_substances": ["string"],
    "laboratory": "string (si connu)",
    "pharmaceutical_forms": ["string"],
    "dosages": ["string"]
  },
  "officinal_classification": {
    "prescription_status": "PMF | PMO | Liste I | Liste II",
    "therapeutic_family": "string",
    "main_symptoms": ["string"]
  },
  "clinical": {
    "indications": ["string"]
  },
  "posology": {
    "adult": "string",
    "child": "string ou null",
    "max_daily_dose": "string",
    "duration_limit_days": "number ou null"
  },
  "safety": {
    "contraindications_absolute": ["string"],
    "contraindications_relative": ["string"],
    "drug_interactions": ["string"],
    "pregnancy_breastfeeding": {"pregnancy": "string", "breastfeeding": "string"},
    "adverse_effects_common": ["string"]
  },
  "officinal_practice": {
    "key_counter_questions": ["string"],
    "deliverable_counsel": ["string"],
    "red_flags": ["string"]
  },
  "rag_metadata": {
    "semantic_tags": ["string"],
    "common_patient_queries": ["string"],
    "priority_score": 0.5
  }
}"""

_SOURCED_PRODUCT_DATA_LAYOUT = """\
{
  "schema_version": "1.0",
  "product_identity": {
    "commercial_name": "string",
    "active_substances": ["string (DCI)"],
    "laboratory": "string (titulaire de l'AMM)",
    "pharmaceutical_forms": ["comprimé", "gélule", "solution buvable", "..."],
    "dosages": ["500 mg", "1 g", "..."]
  },
  "regulatory": {
    "amm_number": "string (si connu)",
    "cip_codes": ["string (CIP13 si connu)"],
    "atc_code": "string",
    "generic_group": "string ou null"
  },
  "officinal_classification": {
    "prescription_status": "PMF | PMO | Liste I | Liste II | Stupéfiant",
    "therapeutic_family": "string",
    "main_symptoms": ["string"],
    "smr": "Insuffisant | Faible | Modéré | Important | Majeur",
    "asmr": "I | II | III | IV | V"
  },
  "clinical": {
    "indications": ["string (indications AMM)"],
    "off_label_uses": ["string"]
  },
  "posology": {
    "adult": "string",
    "child": "string ou null",
    "elderly": "string",
    "max_daily_dose": "string",
    "duration_limit_days": "number ou null",
    "renal_adjustment": "string ou null",
    "hepatic_adjustment": "string ou null"
  },
  "safety": {
    "contraindications_absolute": ["string"],
    "contraindications_relative": ["string"],
    "drug_interactions": ["string"],
    "pregnancy_breastfeeding": {"pregnancy": "string", "breastfeeding": "string"},
    "adverse_effects_common": ["string (> 1/100)"],
    "adverse_effects_serious": ["string"],
    "driving_warning": "boolean",
    "photosensitivity": "boolean"
  },
  "officinal_practice": {
    "key_counter_questions": ["string"],
    "deliverable_counsel": ["string"],
    "red_flags": ["string"],
    "storage": "string",
    "dispensing_tips": ["string"]
  },
  "rag_metadata": {
    "semantic_tags": ["string"],
    "common_patient_queries": ["string"],
    "synonyms": ["string"],
    "priority_score": 0.5
  }
}"""

_ENVELOPE = """\
{
  "enrichedDocument": {
    "product_code": "string (snake_case, ex: doliprane_500mg)",
    "product_name": "string",
    "dci": "string",
    "category": "string",
    "product_data": { "...": "voir structure ci-dessous" }
  },
  "confidence": {
    "product_code": 0-100, "product_name": 0-100, "dci": 0-100,
    "category": 0-100, "posology": 0-100, "contraindications": 0-100,
    "interactions": 0-100, "overall": 0-100
  },
  "reasoning": ["origine et justification des informations"],
  "warnings": ["points à vérifier manuellement"]__SOURCES__
}"""

_GENERIC_ENVELOPE = _ENVELOPE.replace("__SOURCES__", "")
_SOURCED_ENVELOPE = _ENVELOPE.replace(
    "__SOURCES__", ',\n  "sources": ["ANSM - RCP", "..."]'
)

# ---------------------------------------------------------------------------
# Generic enrichment (partial record -> complete record)
# ---------------------------------------------------------------------------

ENRICHMENT_SYSTEM_PROMPT = f"""\
Tu es pharmacologue, spécialiste de la structuration de fiches produits \
pour la pharmacie d'officine française.

Objectif : compléter une fiche produit à partir de données partielles.

Règles :
1. N'utilise que des connaissances pharmaceutiques vérifiables.
2. Attribue à chaque champ produit un score de confiance entre 0 et 100.
3. En cas de doute, donne une valeur générique et une confiance inférieure à 50.
4. product_code, product_name et dci sont toujours présents dans la réponse.
5. Déduis posologie, contre-indications et interactions de la DCI.

Réponds avec un unique objet JSON de la forme :
{_GENERIC_ENVELOPE}

Structure attendue pour product_data :
{_PRODUCT_DATA_LAYOUT}"""


def enrichment_user_prompt(record: Mapping[str, Any]) -> str:
    payload = json.dumps(record, ensure_ascii=False, indent=2, default=str)
    return (
        "Complète la fiche produit à partir des données suivantes :\n"
        f"```json\n{payload}\n```\n"
        "Si un médicament connu est reconnu, complète avec tes connaissances. "
        "Réponds au format demandé, scores de confiance inclus."
    )


# ---------------------------------------------------------------------------
# Sourced enrichment (bare product name -> complete record + sources)
# ---------------------------------------------------------------------------

SOURCED_ENRICHMENT_SYSTEM_PROMPT = f"""\
Tu es pharmacien d'officine en France et tu rédiges la documentation \
produit d'un système RAG officinal.

Objectif : à partir du seul nom d'un médicament, produire une fiche complète.

Sources de référence, par priorité :
1. Base de données publique des médicaments (ANSM)
2. Thériaque
3. Vidal
4. Agence européenne des médicaments (EMA)
5. Avis de la Commission de la Transparence (HAS)

Règles :
1. Appuie-toi sur les médicaments effectivement commercialisés en France.
2. Score de confiance par champ : plus de 80 pour une information issue du \
RCP ou de l'ANSM, 50 à 80 pour une information probable, moins de 50 pour \
une estimation.
3. product_code, product_name et dci sont obligatoires.
4. Emploie la terminologie française (\"comprimé pelliculé\").
5. Liste dans \"sources\" les bases effectivement consultées.

Réponds avec un unique objet JSON de la forme :
{_SOURCED_ENVELOPE}

Structure attendue pour product_data :
{_SOURCED_PRODUCT_DATA_LAYOUT}"""


def sourced_enrichment_user_prompt(product_name: str) -> str:
    return (
        f"Produis la fiche produit complète du médicament : \"{product_name}\"\n\n"
        "1. Identifie la spécialité exacte (nom commercial, laboratoire, dosage).\n"
        "2. Reprends les informations du RCP.\n"
        "3. Réponds au format JSON demandé avec sources et scores de confiance.\n"
        "Si ce médicament n'existe pas ou n'est pas commercialisé en France, "
        "signale-le dans warnings avec une confiance inférieure à 30."
    )


# ---------------------------------------------------------------------------
# Auto-fix (invalid record + errors -> corrected record)
# ---------------------------------------------------------------------------

FIX_SYSTEM_PROMPT = f"""\
Tu es pharmacologue et expert en structuration de données pharmaceutiques.

Objectif : corriger un document JSON pour qu'il respecte le schéma ci-dessous.

Règles :
1. Ne produis que les champs manquants et ne corrige que les champs signalés.
2. Conserve tels quels tous les autres champs du document.
3. product_code est en snake_case dérivé du nom (\"DOLIPRANE 500 mg\" -> \"doliprane_500mg\").
4. dci désigne la molécule active, jamais le nom commercial.
5. product_code, product_name et dci sont obligatoires.
6. Réponds uniquement avec le document JSON corrigé, sans commentaire.

Schéma attendu :
{{
  "product_code": "string, obligatoire",
  "product_name": "string, obligatoire",
  "dci": "string, obligatoire",
  "category": "string, optionnel",
  "product_data": {_PRODUCT_DATA_LAYOUT}
}}"""


def fix_user_prompt(record: Mapping[str, Any], errors: Iterable[tuple[str, str]]) -> str:
    payload = json.dumps(record, ensure_ascii=False, indent=2, default=str)
    error_lines = "\n".join(f"- {field}: {message}" for field, message in errors)
    return (
        f"Document à corriger :\n```json\n{payload}\n```\n\n"
        f"Erreurs de validation :\n{error_lines}\n\n"
        "Retourne le document complet corrigé."
    )
