"""
utils/constants.py

Purpose: Centralized static content

- All user-facing messages (French)
- Personas and email sequence steps
- Lead types and statuses

(Prevents hardcoding across the codebase)
"""

# ============================================================
# PERSONAS
# ============================================================

PERSONA_LABELS = {
    "presse": "Pressé",
    "maximisateur": "Maximisateur",
    "succession": "Succession",
    "nouvelle_vie": "Nouvelle vie",
    "investisseur": "Investisseur",
    "primo": "Primo-vendeur",
}

PERSONAS = list(PERSONA_LABELS.keys())

# (day_offset, email_type) - identical for every persona
SEQUENCE_STEPS = [
    (0, "guide_delivery"),
    (2, "tip"),
    (5, "case_study"),
    (10, "soft_offer"),
]

SEQUENCE_EMAIL_TYPES = [email_type for _, email_type in SEQUENCE_STEPS]


# ============================================================
# LEADS
# ============================================================

LEAD_STATUSES = ["new", "contacted", "converted", "archived"]

LEAD_TYPE_SMS_VERIFIED = "estimation_sms_verified"
LEAD_TYPE_GUIDE = "guide_download"
LEAD_TYPE_FINANCING = "financing"

DEFAULT_LAST_NAME = "Non renseigné"
DEFAULT_POSTAL_CODE = "33000"
DEFAULT_LEAD_CITY = "Non spécifiée"
DEFAULT_CITY_LABEL = "votre région"

CONSENT_SOURCE_HOMEPAGE = "homepage_sms_verification"
CONSENT_SOURCE_GUIDE = "guide_download_form"
CONSENT_SOURCE_FINANCING = "financing_form"


# ============================================================
# EMAIL TEMPLATE CATEGORIES
# ============================================================

TEMPLATE_GUIDE_CONFIRMATION = "guide_confirmation"
TEMPLATE_FINANCING_CONFIRMATION = "financing_confirmation"
TEMPLATE_ADMIN_NOTIFICATION = "admin_notification"


# ============================================================
# SMS VERIFICATION
# ============================================================

# Accepted without any SMS when running in dev mode
DEV_TEST_CODES = ("123456", "000000", "111111")

SMS_CODE_MESSAGE = (
    "Votre code de vérification Estimation Gironde est : {code}. "
    "Ce code expire dans 10 minutes."
)


# ============================================================
# MESSAGES
# ============================================================

INVALID_PHONE_MESSAGE = (
    "Numéro de téléphone invalide. Utilisez un numéro français (06/07) ou international."
)
CODE_ALREADY_SENT_MESSAGE = (
    "Un code a déjà été envoyé. Veuillez attendre {seconds} secondes avant d'en demander un nouveau."
)
CODE_NOT_FOUND_MESSAGE = "Aucun code de vérification trouvé pour ce numéro"
CODE_EXPIRED_MESSAGE = "Le code de vérification a expiré"
CODE_ALREADY_USED_MESSAGE = "Ce code a déjà été utilisé"
TOO_MANY_ATTEMPTS_MESSAGE = "Trop de tentatives. Veuillez demander un nouveau code."
WRONG_CODE_MESSAGE = "Code incorrect. {remaining} tentative(s) restante(s)"
CODE_SENT_MESSAGE = "Code de vérification envoyé"
CODE_VERIFIED_MESSAGE = "Numéro vérifié avec succès"
SMS_SEND_FAILED_MESSAGE = "Erreur lors de l'envoi du SMS"

SESSION_CREATED_MESSAGE = "Session créée avec succès"
SESSION_EXPIRED_MESSAGE = "Session expirée ou invalide"
SMS_SENT_MESSAGE = "Code envoyé par SMS"
INVALID_CODE_FORMAT_MESSAGE = "Code de vérification invalide"
VERIFICATION_NOT_STARTED_MESSAGE = "Vérification SMS non initiée"
VERIFY_MAX_ATTEMPTS_MESSAGE = "Trop de tentatives. Demandez un nouveau code."
VERIFY_REJECTED_MESSAGE = "Code de vérification incorrect"
VERIFICATION_SUCCESS_MESSAGE = "Vérification réussie"

GUIDE_NOT_FOUND_MESSAGE = "Guide non trouvé"
GUIDE_SENT_MESSAGE = "Guide envoyé avec succès"
FINANCING_SAVED_MESSAGE = "Demande de financement enregistrée"
LEAD_NOT_FOUND_MESSAGE = "Lead non trouvé"
LEAD_TOKEN_INVALID_MESSAGE = "Lien expiré ou invalide"

SEQUENCE_EXISTS_MESSAGE = "Sequence already exists"
SEQUENCE_NOT_FOUND_MESSAGE = "Sequence not found"
INVALID_STATUS_MESSAGE = "Invalid status"
INVALID_TOKEN_MESSAGE = "Token invalide"
UNSUBSCRIBED_MESSAGE = "Vous avez été désinscrit avec succès"

SMTP_NOT_CONFIGURED_MESSAGE = "Configuration SMTP manquante"
