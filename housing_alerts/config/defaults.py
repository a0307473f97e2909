"""Default harvesting vocabulary: NYC borough regions, pet patterns, metro box.

These are only defaults. Every value here can be overridden from the
``harvester`` section of the YAML configuration.
"""

CRAIGSLIST_BASE_URL = "https://newyork.craigslist.org/search/{code}/apa"

DEFAULT_REGIONS = [
    {
        "name": "Manhattan",
        "code": "mnh",
        "neighborhoods": [
            "upper east side", "upper west side", "midtown", "financial district",
            "tribeca", "soho", "nolita", "little italy", "chinatown",
            "lower east side", "east village", "west village", "greenwich village",
            "chelsea", "flatiron", "gramercy", "murray hill", "kips bay",
            "yorkville", "hamilton heights", "washington heights", "inwood",
            "east harlem", "harlem",
        ],
    },
    {
        "name": "Brooklyn",
        "code": "brk",
        "neighborhoods": [
            "williamsburg", "greenpoint", "bushwick", "bedford stuyvesant",
            "bed stuy", "crown heights", "prospect heights", "park slope",
            "gowanus", "red hook", "carroll gardens", "cobble hill", "boerum hill",
            "fort greene", "clinton hill", "brooklyn heights", "dumbo",
            "sunset park", "bay ridge", "bensonhurst", "brighton beach",
            "sheepshead bay", "east flatbush", "flatbush", "canarsie",
        ],
    },
    {
        "name": "Queens",
        "code": "que",
        "neighborhoods": [
            "long island city", "astoria", "sunnyside", "woodside", "elmhurst",
            "jackson heights", "corona", "flushing", "forest hills",
            "kew gardens", "richmond hill", "ozone park", "far rockaway",
            "rockaway", "jamaica", "bayside", "whitestone", "fresh meadows",
        ],
    },
    {
        "name": "Bronx",
        "code": "brx",
        "neighborhoods": [
            "mott haven", "melrose", "morrisania", "concourse", "fordham",
            "belmont", "tremont", "soundview", "parkchester", "throggs neck",
            "riverdale", "kingsbridge", "pelham bay",
        ],
    },
    {
        "name": "Staten Island",
        "code": "stn",
        "neighborhoods": [
            "st george", "stapleton", "port richmond", "west brighton",
            "new brighton", "tottenville", "great kills", "eltingville",
            "annadale", "arden heights",
        ],
    },
]

# Negative patterns are checked first: "no pets" must win over "pets".
DEFAULT_PET_NEGATIVE_PATTERNS = [
    r"\bno\s+pets?\b",
    r"\bpets?\s+not\s+allowed\b",
    r"\bno\s+dogs?\b",
    r"\bno\s+cats?\b",
    r"\bpet[\s-]free\b",
    r"\bno\s+animals?\b",
]

DEFAULT_PET_POSITIVE_PATTERNS = [
    r"\bpets?\s+(?:are\s+)?(?:ok|okay|allowed|welcome)\b",
    r"\bpet[\s-]friendly\b",
    r"\b(?:dogs?|cats?)\s+(?:are\s+)?(?:ok|okay|allowed|welcome)\b",
    r"\baccepts?\s+pets?\b",
    r"\bpet\s+deposit\b",
]

DEFAULT_BOUNDING_BOX = {
    "min_latitude": 40.4,
    "max_latitude": 40.9,
    "min_longitude": -74.3,
    "max_longitude": -73.7,
}
