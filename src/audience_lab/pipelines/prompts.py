"""Prompt builders.

Prompts are configuration: they tell the model which tools to call and in
what order, but nothing in the pipelines depends on their wording.
"""

from __future__ import annotations

from collections.abc import Sequence

from audience_lab.domain.enums import JourneyPhase, ResearchDepth

# --------------------------------------------------------------------------- #
#  Persona journey simulation                                                  #
# --------------------------------------------------------------------------- #

PHASE_GUIDANCE: dict[JourneyPhase, str] = {
    JourneyPhase.DISCOVERY: (
        "The user is in early research. Give informational content about "
        "categories and features to consider. Do not name specific brands."
    ),
    JourneyPhase.CONSIDERATION: (
        "The user is comparing options. Give balanced comparisons of types and "
        "categories without endorsing specific brands."
    ),
    JourneyPhase.ACTIVATION: (
        "The user is ready to buy. Give specific, actionable recommendations: "
        "where to purchase, price ranges and concrete products."
    ),
}


def search_engine_system(phase: JourneyPhase) -> str:
    return (
        "You are an AI search engine with live web access. Run focused searches "
        "and answer in two or three short paragraphs, citing sources naturally.\n"
        f"Phase guidance: {PHASE_GUIDANCE[phase]}"
    )


def simulator_system(persona: str, initial_query: str) -> str:
    return f"""You are role-playing this person researching a purchase:

{persona}

Work through three phases in order: discovery, consideration, activation.
In each phase call sendQuery with a question this person would ask, call
extractEntities on the answer if available, and call recordPhaseCompletion
once the phase has given you enough to move on. Build follow-up questions on
what earlier answers mentioned and never repeat a query.

Start with: {initial_query}"""


def extraction_prompt(phase: JourneyPhase, response: str) -> str:
    return (
        f"Extract key entities from this {phase.value} phase search response. "
        "Use exact product names, brand names and features:\n\n"
        f"{response}"
    )


# --------------------------------------------------------------------------- #
#  Social profile ICP                                                          #
# --------------------------------------------------------------------------- #

def social_icp_system(profile_url: str, platform: str, handle: str) -> str:
    return f"""You generate Ideal Customer Profiles (ICPs) for the followers of a
social media creator.

Analyze {profile_url} (@{handle} on {platform}). Call the tools in order:
1. lookupProfile
2. analyzeAudience
3. generateICPs (3-6 meaningfully different segments)

Begin by calling lookupProfile for @{handle}."""


PROFILE_RESEARCH_SYSTEM = (
    "You are a social media researcher. Compile the bio, approximate follower "
    "count, content themes, notable recent content, brand collaborations and "
    "content style. Be factual and say when something is unknown."
)


def evidence_system(
    profile_url: str,
    platform: str,
    handle: str,
    depth: ResearchDepth,
    article_urls: Sequence[str] = (),
) -> str:
    steps = [
        "expandUrls - discover related profiles, websites and articles",
        "deepResearch - research the primary profile with evidence extraction",
    ]
    if article_urls:
        steps.append(
            "extractArticleContext - once per article: " + ", ".join(article_urls)
        )
    steps.append("classifyNiche - niche plus audience constraints and unlikely segments")
    if depth is not ResearchDepth.QUICK:
        steps.append("findComparableCreators - audiences of similar creators")
    steps.append("generateEvidenceBasedICPs - segments citing evidence, scored 0-5")
    steps.append("validateICPs - validate segments against evidence and constraints")
    numbered = "\n".join(f"STEP {i}: {s}" for i, s in enumerate(steps, start=1))
    return f"""You generate ICP segments only where evidence supports them.

Analyze @{handle} on {platform} ({profile_url}). Research depth: {depth.value}.
Execute these steps in order, calling the next tool right after each result:
{numbered}

Every segment must cite evidence (hashtag, content, collaboration, comment,
bio, comparable_creator or article) and carry a 0-5 score. Segments scoring
below 3, matching an unlikely segment, or naming a location the creator has
no connection to will be rejected.

Begin by calling expandUrls for @{handle}."""


# --------------------------------------------------------------------------- #
#  Brand research                                                              #
# --------------------------------------------------------------------------- #

TOPIC_SYSTEM = (
    "You derive search-intent topics from a brand analysis. Each topic is two "
    "to four words a shopper might type into an AI search engine."
)

ICP_SYSTEM = (
    "You derive Ideal Customer Profiles from a brand analysis. Each profile "
    "is one or two sentences describing a distinct buyer."
)

QUERY_SYSTEM = (
    "You write one search query per buyer journey stage: discovery "
    "(problem-aware), consideration (comparative) and activation "
    "(purchase-ready)."
)


def brand_analysis_prompt(url: str) -> str:
    return (
        "Analyze this brand's website and summarize its products, messaging, "
        f"target audience, positioning and key value propositions: {url}"
    )


# --------------------------------------------------------------------------- #
#  Chat                                                                        #
# --------------------------------------------------------------------------- #

CHAT_SEARCH_SYSTEM = (
    "You have access to web search. When the user asks about websites, "
    "companies, current events or anything that needs up-to-date information, "
    "search the web before responding and answer from what you find."
)
