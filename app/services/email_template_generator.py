"""
app/services/email_template_generator.py

Purpose: Persona email sequence templates

- 4 email types x 6 personas = 24 templates
- Category naming: {email_type}_{persona}
- Shared HTML layout with unsubscribe footer
- setup_sequence_templates() replaces the stored sequence templates
"""

from dataclasses import dataclass
from typing import Dict, Any, List

from app.core.config import settings
from app.core.logging import get_logger
from app.services import email_template_service
from utils.constants import PERSONAS, PERSONA_LABELS, SEQUENCE_EMAIL_TYPES

logger = get_logger(__name__)

SITE_NAME = "Estimation Immobilier Gironde"
BRAND_COLOR = "#2563eb"

# Placeholders rendered by email_service.render_template
FIRST_NAME = "{{first_name}}"
GUIDE_TITLE = "{{guide_title}}"
GUIDE_SLUG = "{{guide_slug}}"
PERSONA = "{{persona}}"
SEQUENCE_STEP = "{{sequence_step}}"
UNSUBSCRIBE_LINK = "{{unsubscribe_link}}"


@dataclass
class PersonaCopy:
    benefits: List[str]
    tip: str
    tip_subject: str
    cta_path: str
    cta_label: str
    case_name: str
    case_story: str
    case_keys: List[str]
    offer: str
    offer_goal: str
    offer_subject: str
    city_example: str


PERSONA_COPY: Dict[str, PersonaCopy] = {
    "presse": PersonaCopy(
        benefits=[
            "Checklist pour vendre en moins de 2 mois",
            "Les 5 actions prioritaires à faire immédiatement",
            "Comment éviter les pièges qui font traîner la vente",
        ],
        tip=(
            "Pour vendre rapidement, misez sur la première impression : 90% des acheteurs "
            "se décident dans les 10 premières secondes. Désencombrez complètement, nettoyez "
            "en profondeur et créez une ambiance accueillante."
        ),
        tip_subject="ce conseil va accélérer votre vente",
        cta_path="/guides",
        cta_label="📚 Voir tous nos guides rapides",
        case_name="Thomas M.",
        case_story=(
            "J'avais besoin de vendre rapidement pour ma mutation professionnelle. Grâce aux "
            "conseils reçus, j'ai pu présenter mon appartement sous son meilleur jour et le "
            "vendre en 3 semaines au prix souhaité !"
        ),
        case_keys=["Préparation express du bien", "Prix juste dès le départ", "Communication ciblée"],
        offer=(
            "Je vous propose un appel gratuit de 15 minutes pour analyser votre situation et "
            "vous donner un plan d'action précis pour vendre rapidement."
        ),
        offer_goal="vendre en moins de 60 jours",
        offer_subject="prêt(e) à vendre rapidement ?",
        city_example="Bordeaux",
    ),
    "maximisateur": PersonaCopy(
        benefits=[
            "Stratégies pour vendre au meilleur prix",
            "Les 7 leviers pour maximiser la valeur",
            "Négociation : comment obtenir 5-10% de plus",
        ],
        tip=(
            "Pour maximiser le prix, listez tous les atouts de votre bien : commerces, "
            "transports, écoles, calme, luminosité. Créez un dossier de vente complet avec "
            "ces atouts chiffrés."
        ),
        tip_subject="comment augmenter votre prix de vente",
        cta_path="/estimation",
        cta_label="💰 Estimer mon bien gratuitement",
        case_name="Sophie L.",
        case_story=(
            "Mon objectif était de tirer le maximum de ma maison familiale. En suivant la "
            "stratégie de mise en valeur proposée, j'ai obtenu 8% de plus que l'estimation "
            "initiale."
        ),
        case_keys=["Mise en valeur professionnelle", "Documentation complète des atouts", "Négociation experte"],
        offer=(
            "Obtenez une estimation détaillée gratuite avec analyse des leviers pour "
            "maximiser votre prix de vente."
        ),
        offer_goal="vendre 5 à 10% au-dessus du marché",
        offer_subject="et si on maximisait votre prix ?",
        city_example="Mérignac",
    ),
    "succession": PersonaCopy(
        benefits=[
            "Démarches administratives simplifiées",
            "Optimisation fiscale de la succession",
            "Gestion des co-héritiers en toute sérénité",
        ],
        tip=(
            "Pour une succession sereine, établissez un mandat de vente au nom de tous les "
            "héritiers. Cela évite les blocages. Pensez aussi à regrouper actes et "
            "diagnostics en amont."
        ),
        tip_subject="simplifiez vos démarches de succession",
        cta_path="/lexique",
        cta_label="📖 Lexique succession immobilière",
        case_name="Michel et Anne D.",
        case_story=(
            "Après le décès de papa, nous devions vendre la maison familiale à 4 héritiers. "
            "L'accompagnement nous a permis de gérer sereinement toutes les démarches."
        ),
        case_keys=["Préparation administrative anticipée", "Coordination entre héritiers", "Accompagnement juridique"],
        offer="Bénéficiez d'un accompagnement complet pour votre succession immobilière, de A à Z.",
        offer_goal="gérer sereinement toutes les démarches",
        offer_subject="simplifions votre succession",
        city_example="Pessac",
    ),
    "nouvelle_vie": PersonaCopy(
        benefits=[
            "Planification de votre nouveau projet de vie",
            "Coordination achat/vente sans stress",
            "Optimisation du timing pour votre déménagement",
        ],
        tip=(
            "Pour coordonner achat et vente, négociez une clause de vente conditionnelle "
            "dans votre promesse d'achat. Vous gagnez du temps et évitez un double portage."
        ),
        tip_subject="coordonnez parfaitement vos projets",
        cta_path="/financement",
        cta_label="🏡 Solutions de financement",
        case_name="Catherine B.",
        case_story=(
            "Nous voulions nous rapprocher de nos enfants à la retraite. L'équipe nous a aidés "
            "à coordonner la vente de notre maison et l'achat de notre appartement."
        ),
        case_keys=["Planification coordonnée", "Solutions de financement adaptées", "Timing optimisé"],
        offer="Planifions ensemble votre nouveau projet de vie avec une stratégie coordonnée achat/vente.",
        offer_goal="transition sans stress financier",
        offer_subject="concrétisons votre nouveau projet",
        city_example="Talence",
    ),
    "investisseur": PersonaCopy(
        benefits=[
            "Optimisation fiscale de la revente",
            "Stratégies pour réinvestir efficacement",
            "Analyse ROI et plus-values immobilières",
        ],
        tip=(
            "Pour optimiser votre fiscalité, documentez tous vos travaux d'amélioration : ils "
            "peuvent être déduits de la plus-value imposable. Gardez toutes les factures."
        ),
        tip_subject="optimisez votre fiscalité immobilière",
        cta_path="/actualites",
        cta_label="📈 Actualités marché immobilier",
        case_name="Jean-Pierre R.",
        case_story=(
            "Je vendais un appartement locatif pour réinvestir ailleurs. Les conseils fiscaux "
            "m'ont fait économiser plusieurs milliers d'euros sur ma plus-value."
        ),
        case_keys=["Optimisation fiscale maximale", "Stratégie de réinvestissement", "Analyse ROI précise"],
        offer="Analysons ensemble votre stratégie patrimoniale et les optimisations fiscales possibles.",
        offer_goal="maximiser votre rentabilité",
        offer_subject="optimisons votre stratégie",
        city_example="Gradignan",
    ),
    "primo": PersonaCopy(
        benefits=[
            "Guide pas-à-pas pour votre première vente",
            "Éviter les erreurs classiques des débutants",
            "Être serein tout au long du processus",
        ],
        tip=(
            "Pour votre première vente, faites estimer votre bien par 2 ou 3 professionnels. "
            "Vous obtenez une fourchette fiable et évitez de mal évaluer votre bien."
        ),
        tip_subject="évitez cette erreur de débutant",
        cta_path="/guides",
        cta_label="🎓 Guides pour débutants",
        case_name="Amélie et Julien",
        case_story=(
            "Notre première vente nous stressait énormément. L'accompagnement pas-à-pas nous "
            "a rassurés et tout s'est parfaitement déroulé."
        ),
        case_keys=["Accompagnement rassurant", "Évitement des pièges classiques", "Suivi personnalisé"],
        offer="Accompagnement complet pour votre première vente, avec suivi personnalisé.",
        offer_goal="vous rassurer à chaque étape",
        offer_subject="réussissons votre première vente",
        city_example="Bègles",
    ),
}


def _layout(title: str, subtitle: str, persona_label: str, body: str) -> str:
    base_url = settings.APP_URL
    return f"""<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>{title}</title>
</head>
<body style="margin:0;padding:0;font-family:Arial,sans-serif;line-height:1.6;color:#333;background:#f8fafc;">
  <div style="max-width:600px;margin:0 auto;background:#ffffff;">
    <div style="background:{BRAND_COLOR};color:#ffffff;padding:30px 20px;text-align:center;">
      <h1 style="margin:0;font-size:24px;">🏠 {SITE_NAME}</h1>
      <p style="margin:10px 0 0 0;">{subtitle}</p>
    </div>
    <div style="padding:40px 30px;">
      <div style="display:inline-block;background:#fef3c7;color:#92400e;padding:4px 12px;border-radius:20px;font-size:12px;">Profil {persona_label}</div>
{body}
      <p>L'équipe {SITE_NAME}</p>
    </div>
    <div style="background:#f8fafc;padding:30px 20px;text-align:center;font-size:14px;color:#6b7280;">
      <p><strong>{SITE_NAME}</strong><br>Votre expert en estimation immobilière en Gironde<br>
      <a href="{base_url}" style="color:{BRAND_COLOR};">{base_url}</a></p>
      <p style="font-size:12px;color:#9ca3af;">Vous recevez cet email car vous avez téléchargé un de nos guides.<br>
      <a href="{UNSUBSCRIBE_LINK}">Se désabonner</a> | <a href="{base_url}/confidentialite">Politique de confidentialité</a></p>
    </div>
  </div>
</body>
</html>"""


def _button(href: str, label: str) -> str:
    return (
        f'      <p><a href="{href}" style="display:inline-block;background:{BRAND_COLOR};color:#ffffff;'
        f'text-decoration:none;padding:15px 30px;border-radius:8px;font-weight:600;">{label}</a></p>'
    )


def _text_footer() -> str:
    return f"\n\nCordialement,\nL'équipe {SITE_NAME}\n\nSe désabonner : {UNSUBSCRIBE_LINK}"


def guide_delivery_template(persona: str) -> Dict[str, Any]:
    label = PERSONA_LABELS[persona]
    copy = PERSONA_COPY[persona]
    read_url = f"{settings.APP_URL}/guides/{GUIDE_SLUG}/read"
    benefits = "\n".join(f"        <li>✅ {item}</li>" for item in copy.benefits)

    body = f"""      <h2>Bonjour {FIRST_NAME} 👋</h2>
      <p>Votre guide personnalisé « <strong>{GUIDE_TITLE}</strong> » est maintenant accessible.</p>
      <div style="background:#f0f9ff;border-left:4px solid {BRAND_COLOR};padding:20px;margin:25px 0;">
        <p><strong>Ce guide contient ce dont vous avez besoin en tant que {label.lower()} :</strong></p>
        <ul>
{benefits}
        </ul>
      </div>
{_button(read_url, "📖 Lire mon guide maintenant")}
      <p><strong>🎁 Bonus :</strong> dans les prochains jours, vous recevrez des conseils pratiques et des retours d'expérience de vendeurs dans votre situation.</p>"""

    text = (
        f"Bonjour {FIRST_NAME},\n\n"
        f"Votre guide personnalisé \"{GUIDE_TITLE}\" est maintenant accessible.\n"
        f"Accédez à votre guide : {read_url}\n\n"
        f"En bonus, vous recevrez prochainement des conseils adaptés à votre profil ({label.lower()})."
        + _text_footer()
    )

    return {
        "category": f"guide_delivery_{persona}",
        "name": f"Livraison guide - {label}",
        "subject": f"{FIRST_NAME}, votre guide est prêt ! 🏠",
        "html_content": _layout("Votre guide est prêt !", "Votre guide personnalisé", label, body),
        "text_content": text,
        "variables": ["first_name", "guide_title", "guide_slug", "unsubscribe_link"],
    }


def tip_template(persona: str) -> Dict[str, Any]:
    label = PERSONA_LABELS[persona]
    copy = PERSONA_COPY[persona]

    body = f"""      <h2>{FIRST_NAME}, voici un conseil qui va vous faire gagner du temps ⚡</h2>
      <p>J'espère que votre guide vous a été utile ! Voici un conseil pensé pour votre profil.</p>
      <div style="background:#f0f9ff;border-left:4px solid {BRAND_COLOR};padding:20px;margin:25px 0;">
        <h3>💡 Conseil du jour</h3>
        <p>{copy.tip}</p>
      </div>
{_button(settings.APP_URL + copy.cta_path, copy.cta_label)}"""

    text = (
        f"Bonjour {FIRST_NAME},\n\nVoici un conseil pour votre profil ({label.lower()}) :\n\n"
        f"{copy.tip}\n\nPour aller plus loin : {settings.APP_URL}{copy.cta_path}"
        + _text_footer()
    )

    return {
        "category": f"tip_{persona}",
        "name": f"Conseil pratique - {label}",
        "subject": f"{FIRST_NAME}, {copy.tip_subject} 💡",
        "html_content": _layout("Conseil exclusif", "Pour optimiser votre vente immobilière", label, body),
        "text_content": text,
        "variables": ["first_name", "unsubscribe_link"],
    }


def case_study_template(persona: str) -> Dict[str, Any]:
    label = PERSONA_LABELS[persona]
    copy = PERSONA_COPY[persona]
    keys_html = "".join(f"<li><strong>{key}</strong></li>" for key in copy.case_keys)
    keys_text = "\n".join(f"{i}. {key}" for i, key in enumerate(copy.case_keys, 1))

    body = f"""      <h2>{FIRST_NAME}, cette histoire va vous inspirer 🌟</h2>
      <p>Voici l'expérience de {copy.case_name}, un vendeur dans votre situation qui a réussi sa vente.</p>
      <div style="background:#fafafa;border-radius:8px;padding:20px;margin:20px 0;font-style:italic;">
        « {copy.case_story} »
        <div style="font-weight:600;margin-top:10px;font-style:normal;color:#6b7280;">{copy.case_name}, vendeur en Gironde</div>
      </div>
      <div style="background:#f0f9ff;border-left:4px solid {BRAND_COLOR};padding:20px;margin:25px 0;">
        <h3>🎯 Les 3 clés de sa réussite</h3>
        <ol>{keys_html}</ol>
      </div>
{_button(settings.APP_URL + "/contact", "🚀 Obtenir une estimation personnalisée")}"""

    text = (
        f"Bonjour {FIRST_NAME},\n\nVoici l'expérience de {copy.case_name} :\n\n{copy.case_story}\n\n"
        f"Les 3 clés de sa réussite :\n{keys_text}\n\n"
        f"Vous pouvez obtenir les mêmes résultats : {settings.APP_URL}/contact"
        + _text_footer()
    )

    return {
        "category": f"case_study_{persona}",
        "name": f"Cas d'étude - {label}",
        "subject": f"{FIRST_NAME}, comment {copy.case_name} a réussi sa vente 🌟",
        "html_content": _layout("Retour d'expérience", "Un vendeur dans votre situation témoigne", label, body),
        "text_content": text,
        "variables": ["first_name", "unsubscribe_link"],
    }


def soft_offer_template(persona: str) -> Dict[str, Any]:
    label = PERSONA_LABELS[persona]
    copy = PERSONA_COPY[persona]
    contact_url = f"{settings.APP_URL}/contact?source=email_sequence&persona={PERSONA}&step={SEQUENCE_STEP}"

    body = f"""      <h2>{FIRST_NAME}, et si on passait à l'action ? 🚀</h2>
      <p>Ces derniers jours, vous avez reçu des conseils adaptés à votre profil. Comment les appliquer à <em>votre</em> situation ?</p>
      <div style="background:#f0f9ff;border-left:4px solid {BRAND_COLOR};padding:20px;margin:25px 0;">
        <p>{copy.offer} <strong>Objectif : {copy.offer_goal}.</strong></p>
      </div>
{_button(contact_url, "📞 Échanger sur ma situation (gratuit)")}
      <p><strong>Aucune obligation</strong> : un simple échange pour comprendre votre situation.</p>
      <div style="background:#fafafa;border-radius:8px;padding:20px;margin:20px 0;font-style:italic;">
        « Grâce à cet accompagnement, j'ai vendu 15% au-dessus de mon estimation initiale, en 6 semaines ! »
        <div style="font-weight:600;margin-top:10px;font-style:normal;color:#6b7280;">Marie L., {copy.city_example}</div>
      </div>"""

    text = (
        f"Bonjour {FIRST_NAME},\n\nPrêt(e) à passer à l'étape suivante ?\n\n"
        f"{copy.offer} Objectif : {copy.offer_goal}.\n\n"
        f"Échangeons sur votre situation (gratuit) : {contact_url}"
        + _text_footer()
    )

    return {
        "category": f"soft_offer_{persona}",
        "name": f"Offre accompagnement - {label}",
        "subject": f"{FIRST_NAME}, {copy.offer_subject} 🚀",
        "html_content": _layout("Prêt pour l'étape suivante ?", "Accompagnement personnalisé disponible", label, body),
        "text_content": text,
        "variables": ["first_name", "persona", "sequence_step", "unsubscribe_link"],
    }


TEMPLATE_BUILDERS = {
    "guide_delivery": guide_delivery_template,
    "tip": tip_template,
    "case_study": case_study_template,
    "soft_offer": soft_offer_template,
}


def generate_all_templates() -> List[Dict[str, Any]]:
    """Builds the 24 sequence templates (not persisted)."""
    return [
        TEMPLATE_BUILDERS[email_type](persona)
        for persona in PERSONAS
        for email_type in SEQUENCE_EMAIL_TYPES
    ]


def sequence_template_categories() -> List[str]:
    return [f"{email_type}_{persona}" for persona in PERSONAS for email_type in SEQUENCE_EMAIL_TYPES]


async def setup_sequence_templates() -> Dict[str, Any]:
    """
    Deletes stored sequence templates and recreates all 24.

    Returns:
        {"success": bool, "created": int, "deleted": int, "errors": list}
    """
    deleted = await email_template_service.delete_templates_by_categories(sequence_template_categories())

    created = 0
    errors = []
    for template in generate_all_templates():
        try:
            await email_template_service.create_template({**template, "is_active": True})
            created += 1
        except Exception as e:
            logger.error(f"❌ Error saving template {template['name']}: {e}")
            errors.append(f"{template['name']}: {e}")

    logger.info(f"✅ Sequence templates ready: {created} created, {deleted} replaced")
    return {"success": not errors, "created": created, "deleted": deleted, "errors": errors}
