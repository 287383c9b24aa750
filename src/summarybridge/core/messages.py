"""User-facing strings shown in the content slot."""

from __future__ import annotations

from enum import Enum


class Language(str, Enum):
    NL = "NL"
    FR = "FR"

    @classmethod
    def coerce(cls, value: "Language | str | None") -> "Language":
        if isinstance(value, Language):
            return value
        candidate = (value or "").strip().upper()
        try:
            return cls(candidate)
        except ValueError:
            return cls.NL


_LOCALIZED: dict[str, dict[Language, str]] = {
    "select_file_first": {
        Language.NL: "Selecteer eerst een PDF-bestand",
        Language.FR: "Veuillez d'abord sélectionner un fichier PDF",
    },
    "upload_succeeded": {
        Language.NL: "Uploaden succesvol. Samenvatting wordt nu gegenereerd...",
        Language.FR: "Téléchargement réussi. Génération du résumé en cours…",
    },
    "upload_button": {
        Language.NL: "Upload Balans/Jaarrekening",
        Language.FR: "Télécharger le bilan/les comptes annuels",
    },
    "send_button": {
        Language.NL: "Verzend",
        Language.FR: "Envoyer",
    },
}

NO_SUMMARY_PRODUCED = "No summary produced after multiple attempts."
COULD_NOT_PARSE = "Could not parse summary response after multiple attempts."
COULD_NOT_FETCH = "Could not fetch summary after multiple attempts."
NO_NUMERIC_ID = "Upload succeeded but could not extract a numeric ID."
NO_JSON_RETURNED = "No JSON returned"


def localized(key: str, language: Language | str | None) -> str:
    """Return the ``key`` message in ``language``, falling back to Dutch."""

    variants = _LOCALIZED[key]
    return variants[Language.coerce(language)]


def server_aborted(status: int) -> str:
    return f"Server returned {status}, aborting."


def error_message(detail: str | None) -> str:
    return f"Error: {detail or 'Upload failed'}"
