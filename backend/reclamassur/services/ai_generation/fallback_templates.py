"""
Static letters used when no AI provider produced a usable text.
One template per letter type, filled by plain string formatting.
"""
from datetime import date
from typing import Optional

from ...models.letters import GenerationContext
from ..templating.variables import format_long_date, format_plain_number

RECLAMATION_INTERNE = """{client}
{email}

À l'attention du Service Réclamations
{compagnie}

Le {date_courrier}

Objet : Réclamation contre le refus de prise en charge
Police n° {police}

Madame, Monsieur,

Je me permets de vous adresser la présente réclamation concernant le sinistre survenu le {date_sinistre}, déclaré au titre du contrat référencé ci-dessus.

Par courrier du {refus_date}, vous m'avez notifié votre refus de prendre en charge ce sinistre pour un montant de {montant} €, au motif suivant : {motif}.

Je conteste cette décision. Les pièces transmises établissent la réalité du sinistre et sa couverture au titre des garanties souscrites. Conformément à l'article L. 113-5 du Code des assurances, l'assureur est tenu d'exécuter la prestation convenue lors de la réalisation du risque.

Je vous demande en conséquence de bien vouloir réexaminer mon dossier et procéder à l'indemnisation de la somme de {montant} € dans les meilleurs délais.

Dans l'attente de votre réponse, je vous prie d'agréer, Madame, Monsieur, l'expression de mes salutations distinguées.

{client}
"""

MEDIATION = """{client}
{email}

À l'attention du Médiateur de l'Assurance

Le {date_courrier}

Objet : Demande de médiation - litige avec {compagnie}
Police n° {police}

Madame, Monsieur le Médiateur,

Je sollicite votre intervention dans le litige qui m'oppose à {compagnie} au sujet du sinistre survenu le {date_sinistre}.

Le {refus_date}, l'assureur a refusé la prise en charge d'un montant de {montant} €, au motif suivant : {motif}. Ma réclamation interne n'a pas permis de résoudre ce différend.

J'estime que ce refus n'est pas fondé au regard des garanties prévues au contrat et des justificatifs produits. Je vous prie de trouver ci-joint l'ensemble des pièces du dossier.

Je vous remercie de bien vouloir examiner ma demande et de formuler un avis permettant le règlement amiable de ce litige.

Je vous prie d'agréer, Madame, Monsieur le Médiateur, l'expression de ma haute considération.

{client}
"""

MISE_EN_DEMEURE = """{client}
{email}

{compagnie}

Le {date_courrier}

Lettre recommandée avec accusé de réception

Objet : Mise en demeure
Police n° {police}

Madame, Monsieur,

Malgré mes précédentes démarches, vous persistez à refuser la prise en charge du sinistre survenu le {date_sinistre}, pour un montant de {montant} €, refus notifié le {refus_date} au motif suivant : {motif}.

Par la présente, je vous mets en demeure de procéder au règlement de la somme de {montant} € dans un délai de quinze jours à compter de la réception de ce courrier, en application de l'article L. 113-5 du Code des assurances et de l'article 1344 du Code civil.

À défaut, je me réserverai le droit de saisir la juridiction compétente afin d'obtenir l'exécution de vos obligations contractuelles, ainsi que l'indemnisation du préjudice subi.

Je vous prie d'agréer, Madame, Monsieur, mes salutations distinguées.

{client}
"""

FALLBACK_TEMPLATES = {
    "reclamation_interne": RECLAMATION_INTERNE,
    "mediation": MEDIATION,
    "mise_en_demeure": MISE_EN_DEMEURE,
}


def _display_date(value: Optional[str]) -> str:
    if not value:
        return "N/A"
    return format_long_date(value)


def render_fallback_letter(type_courrier: str, context: GenerationContext, today: Optional[date] = None) -> str:
    """Static letter for the type, or the internal complaint for unknown types."""
    template = FALLBACK_TEMPLATES.get(type_courrier, RECLAMATION_INTERNE)
    montant = format_plain_number(context.montant_refuse) if context.montant_refuse is not None else "N/A"
    return template.format(
        client=context.client,
        email=context.email,
        compagnie=context.compagnie_assurance or "N/A",
        police=context.police_number or "N/A",
        date_courrier=format_long_date(today or date.today()),
        date_sinistre=_display_date(context.date_sinistre),
        refus_date=_display_date(context.refus_date),
        montant=montant,
        motif=context.motif_refus or "Non spécifié",
    )
