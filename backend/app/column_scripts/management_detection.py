"""Management detection: does a job title describe a management role?"""

from typing import Dict

from .matching import contains_phrase, phrase_words, title_parts

SCRIPT_ID = "management-detection"
TITLE = "Management Detection"
DESCRIPTION = (
    "Flags job titles that indicate a management position (CEO, Founder, "
    "Managing Director, board and executive roles, heads of departments), "
    "covering common English and German variants."
)
REQUIRED_COLUMNS = (("occupation", "job title or occupation"),)

MANAGEMENT_KEYWORDS = (
    # General
    "CEO", "Chief Executive Officer", "Founder", "Co-Founder", "Gründer", "Gründerin",
    "Managing Director", "Geschäftsführer", "Gesellschafter", "Geschäftsführerin",
    "Inhaber", "Inhaberin", "Partner", "Associate Partner", "Executive Director",
    "Aufsichtsratsmitglied", "Aufsichtsratsmitgliedin", "Aufsichtsrat",
    "Advisory Board Member", "Advisory Board", "Aufsichtsratsvorsitzender",
    "Aufsichtsratsvorsitzende", "Aufsichtsratsvorsitzenderin", "Director", "Chairman",
    "Chairperson", "President", "Vorstand", "Beirat", "Board Member",
    "Shareholder & Executive", "Managing Owner", "Bereichsleiter", "Team Leader",
    "Teamlead", "Teamleitung", "Geschäftsführung", "Mitglied der Geschäftsleitung",
    "Chair of the Supervisory Board", "Chairwoman of the Board", "Vorstandsmitglied",
    "Geschäftsleiter", "Agenturleiter", "Geschäftsstellenleiter", "Projektleitung",
    "Prokurist", "Stabsstellenleiter", "Cluster Head", "Managing Editor",
    "Founder & Managing Owner", "Managing Shareholder",
    "Chief Information Security Officer", "Chief Process Officer",
    "Chief Experience Officer", "Chief Product Officer", "Chief Commercial Officer",
    "Chief Strategy Officer", "Chief Revenue Officer", "Chief Human Resources Officer",
    "Chief People Officer", "Chief Delivery Officer", "Chief of Staff",

    # Department and area leadership
    "Head of", "Leiter", "Leiterin", "VP", "Vice President", "Head of Strategy",
    "Head of Sales", "Head of Product", "Head of Marketing", "Head of Engineering",
    "Head of Business Development", "Head of Innovation", "Chief Marketing Officer",
    "Chief Technology Officer", "Chief Financial Officer", "Chief Operating Officer",
    "Chief Sales Officer", "Chief Digital Officer", "Chief Growth Officer",
    "CFO", "CMO", "COO", "CTO", "CDO", "CSO", "CPO", "CHRO", "CINO",

    # Other typical management roles
    "Executive", "Leadership", "Principal", "Lead", "Initiator & Executive Board Member",
    "Managing Partner", "Unit Lead", "Cluster Lead", "Group Lead",
)

_KEYWORD_WORDS = tuple(phrase_words(k) for k in MANAGEMENT_KEYWORDS)


def is_in_management(title: str) -> bool:
    """True if any role in ``title`` contains a management keyword as whole words."""
    if not title:
        return False
    return any(
        contains_phrase(words, keyword)
        for words in title_parts(title)
        for keyword in _KEYWORD_WORDS
    )


def execute(value: str, row_context: Dict[str, str]) -> str:
    return "true" if is_in_management(value) else "false"
