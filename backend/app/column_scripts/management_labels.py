"""Management labels: map a job title to a standardized management label."""

from typing import Dict, NamedTuple, Optional, Tuple

from .matching import contains_phrase, phrase_words, title_parts

SCRIPT_ID = "management-labels"
TITLE = "Management Labels"
DESCRIPTION = (
    "Returns the standardized management label (CEO, FOUNDER, BOARD_MEMBER, "
    "C_LEVEL, HEAD_OF, ...) for a job title, or an empty value when the "
    "title matches no known management role."
)
REQUIRED_COLUMNS = (("occupation", "job title or occupation"),)


class ManagementLabel(NamedTuple):
    label: str
    variations: Tuple[str, ...]


MANAGEMENT_LABELS = (
    ManagementLabel("CEO", (
        "CEO", "Chief Executive Officer", "Geschäftsführer", "Geschäftsführerin",
        "Managing Director", "Geschäftsleiter", "Geschäftsstellenleiter", "Agenturleiter",
        "Geschäftsführung", "President",
    )),
    ManagementLabel("FOUNDER", (
        "Founder", "Co-Founder", "Gründer", "Gründerin", "Inhaber", "Inhaberin",
    )),
    ManagementLabel("BOARD_MEMBER", (
        "Aufsichtsratsmitglied", "Aufsichtsratsmitgliedin", "Aufsichtsrat",
        "Advisory Board Member", "Advisory Board", "Board Member", "Vorstand", "Beirat",
        "Mitglied der Geschäftsleitung", "Vorstandsmitglied",
        "Initiator & Executive Board Member", "Gesellschafter",
    )),
    ManagementLabel("BOARD_CHAIR", (
        "Aufsichtsratsvorsitzender", "Aufsichtsratsvorsitzende", "Aufsichtsratsvorsitzenderin",
        "Chair of the Supervisory Board", "Chairman", "Chairperson", "Chairwoman of the Board",
    )),
    ManagementLabel("C_LEVEL", (
        "Chief Information Security Officer", "Chief Process Officer",
        "Chief Experience Officer", "Chief Product Officer", "Chief Commercial Officer",
        "Chief Strategy Officer", "Chief Revenue Officer", "Chief Human Resources Officer",
        "Chief People Officer", "Chief Delivery Officer", "Chief of Staff",
        "Chief Marketing Officer", "Chief Technology Officer", "Chief Financial Officer",
        "Chief Operating Officer", "Chief Sales Officer", "Chief Digital Officer",
        "Chief Growth Officer", "CFO", "CMO", "COO", "CTO", "CDO", "CSO", "CPO", "CHRO", "CINO",
    )),
    ManagementLabel("HEAD_OF", (
        "Head of", "Leiter", "Leiterin", "Bereichsleiter", "Team Leader", "Teamlead",
        "Teamleitung", "Projektleitung", "Stabsstellenleiter", "Cluster Head",
        "Head of Strategy", "Head of Sales", "Head of Product", "Head of Marketing",
        "Head of Engineering", "Head of Business Development", "Head of Innovation",
        "Managing Editor",
    )),
    ManagementLabel("PARTNER", (
        "Partner", "Associate Partner", "Managing Partner", "Shareholder & Executive",
        "Managing Owner", "Founder & Managing Owner", "Managing Shareholder",
    )),
    ManagementLabel("DIRECTOR", ("Director", "Executive Director", "Prokurist")),
    ManagementLabel("VICE_PRESIDENT", ("VP", "Vice President")),
    ManagementLabel("LEAD", ("Lead", "Unit Lead", "Cluster Lead", "Group Lead", "Principal")),
    ManagementLabel("EXECUTIVE", ("Executive", "Leadership")),
    ManagementLabel("HR", (
        "HR", "HR-Manager", "HR-Managerin", "HR Manager", "HR Business Partner", "HRBP",
        "HR Director", "HR Specialist", "HR Generalist", "HR Operations", "HR Coordinator",
        "HR Assistant", "HR Consultant", "HR Analyst", "HR Administrator",
        "HR Representative", "HR Officer", "HR Executive", "HR Lead", "HR Team Lead",
        "HR Supervisor", "HR Head", "HR Vice President", "HR VP",
        "Human Resources", "Human Resources Manager", "Human Resources Business Partner",
        "Human Resources Director", "Head of HR", "Head of Human Resources",
        "Head of People", "Head of Talent", "Head of Recruitment", "Head of People Operations",
        "Head of People & Culture", "Head of People & Organization",
        "Head of People & Development", "Head of People & Talent",
        "Head of People & Learning", "Head of People & Performance",
        "Head of People & Total Rewards", "People Manager", "People & Culture",
        "People Operations", "People Lead", "Talent Acquisition", "Talent Manager",
        "Talent Partner", "Recruiter", "Recruiterin", "Recruitment", "Recruiting Manager",
        "Recruiting Specialist", "Personal", "Personalabteilung", "Personalentwicklung",
        "Personaladministration", "Personalleiter", "Personalleiterin", "Leiter Personal",
        "Leiterin Personal", "Personalreferent", "Personalreferentin", "Personalmanager",
        "Personalmanagerin", "Personalberatung", "Personalberater", "Personalberaterin",
        "Dozent Personalwesen",
    )),
)

_LABEL_WORDS = tuple(
    (entry.label, tuple(phrase_words(v) for v in entry.variations))
    for entry in MANAGEMENT_LABELS
)


def get_management_label(title: str) -> Optional[str]:
    """Standardized label for the first role in ``title`` that matches.

    Within a role the longest matching variation wins, so "Vice President"
    maps to VICE_PRESIDENT rather than CEO (via "President"). Equal-length
    matches resolve in MANAGEMENT_LABELS order.
    """
    if not title:
        return None

    for words in title_parts(title):
        best_label, best_len = None, 0
        for label, variations in _LABEL_WORDS:
            for variation in variations:
                if len(variation) > best_len and contains_phrase(words, variation):
                    best_label, best_len = label, len(variation)
        if best_label:
            return best_label
    return None


def execute(value: str, row_context: Dict[str, str]) -> str:
    return get_management_label(value) or ""
