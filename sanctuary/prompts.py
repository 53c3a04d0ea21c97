"""
Prompt templates for the four analysis tasks.

Every builder is a pure function of its inputs and returns a ``PromptPair``
(system instruction + user message). The system text names the detection
categories, the penalties and caps, and the exact JSON shape to return.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Mapping, Optional

from sanctuary.schemas.story import format_narrative, step_title


class PromptTask(str, enum.Enum):
    GATEKEEPING = "gatekeeping"
    COACHING = "coaching"
    SCORING = "scoring"
    FIDELITY = "fidelity"


@dataclass(frozen=True)
class PromptPair:
    system: str
    user: str


# ---------------------------------------------------------------------------
# Shared detection catalogue
# ---------------------------------------------------------------------------

_DETECTION_CATEGORIES = """
MARKETING BUZZWORDS:
- "leverage", "synergy", "thought leader", "game-changer", "unlock", "empower"
- Corporate speak and generic platitudes: "Follow your passion", "Be authentic", "Never give up"

ENGAGEMENT HOOKS:
- Attention-grabbing openings designed to "stop the scroll" ("I almost died that day", "What happened next changed everything", "Nobody talks about this but...")
- Clickbait teasing, manufactured suspense, cliffhanger language
- Opening with a provocative question aimed at an audience
- "Want to know the secret?", "Here's what nobody tells you"

CALLS TO ACTION:
- Telling the reader what to do ("Share this if...", "Drop a comment", "Follow me for more", "Tag someone who...")
- Promoting a product, service, course, link, newsletter, podcast or brand
- "DM me", "Link in bio", "Check out my..."
- Subtle CTAs disguised as advice ("If you want to learn more about X...")

PERFORMATIVE VULNERABILITY:
- "I failed... but now I'm successful" redemption arcs, humble brags
- Content templates ("3 things I learned"), lists optimized for engagement
- LinkedIn formatting: hashtags, emoji clusters, "Let me tell you about my journey"
- Passive voice that distances from emotion ("Mistakes were made")
""".strip()

_GENUINE_SIGNALS = """
- Raw, unpolished language
- Specific details and sensory memories
- Admissions without redemption arcs
- Lowercase, conversational tone
- Incomplete thoughts
- Genuine confusion or uncertainty
""".strip()

_VERDICT_SHAPE = """
Respond with JSON only, no commentary and no code fences:
{
  "needsRefinement": boolean,
  "hookDetected": boolean,
  "ctaDetected": boolean,
  "softNudge": "one gentle sentence inviting a more honest rewrite, or null"
}
""".strip()

_SCORING_CRITERIA = """
1. AUTHENTICITY (0-100):
   - High: Specific details, sensory language, admits uncertainty, lowercase/raw tone
   - Low: Generic statements, polished language, sounds rehearsed, clichés
   - PENALTY: If hooks are detected, cap authenticity at 40 maximum. Hooks signal performance, not truth.

2. VULNERABILITY (0-100):
   - High: Shares actual emotions, admits mistakes without justification, reveals internal conflict
   - Low: Surface-level sharing, always has an answer, distances from emotion
   - PENALTY: If CTAs are detected, cap vulnerability at 30 maximum. You can't be vulnerable while selling.

3. CREDIBILITY (0-100):
   - High: Consistent timeline, specific names/places/dates, logical cause-effect
   - Low: Vague details, timeline jumps, claims without evidence
   - PENALTY: Hooks and CTAs both reduce credibility by 20 points each.

4. CRINGE RISK (0-100, higher = worse):
   - High: Humble brags, forced lessons, "journey" language, trying too hard
   - Low: Natural voice, earned insights, proportional emotion
   - PENALTY: Any hook adds +25. Any CTA adds +30. Both together = at least 85.

5. PLATFORM PLAY (0-100, higher = worse):
   - High: Revenue/achievement flexing, "I was told I'd never..." setups, engagement bait,
     fake authority, affiliate links, artificial formatting, forced casual sign-offs,
     advice that is really a sales pitch, fake vulnerability followed by bragging
   - Low: No engagement tactics, genuine story without agenda, no promotional elements
   - PENALTY: Platform play reduces authenticity and vulnerability by up to 30 points each.

All five numbers are integers between 0 and 100. Apply every cap and penalty yourself.
""".strip()


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------

def build_gatekeeping_prompt(text: str) -> PromptPair:
    """Blocking truth check run before the writer leaves step 1."""
    system = f"""You are a truth detector for The Sanctuary, a platform for raw, unfiltered personal stories.
Your job is to decide whether the opening moment of a story reads like marketing, content or performance
rather than genuine human truth.

DETECT these patterns:
{_DETECTION_CATEGORIES}

ALLOW these (they are signs of truth):
{_GENUINE_SIGNALS}

Set "needsRefinement" to true only when the text clearly reads as content rather than truth.
Set "hookDetected" / "ctaDetected" whenever a hook or call to action is present, even a mild one.

{_VERDICT_SHAPE}"""
    user = f'Analyze this opening moment for authenticity:\n\n"{text}"'
    return PromptPair(system=system, user=user)


def build_coaching_prompt(text: str, step: Optional[int] = None) -> PromptPair:
    """Advisory check run on every later step; it never blocks on its own."""
    where = f"step {step} ({step_title(step)}) of a 12-step truth process" if step else "one step of a 12-step truth process"
    system = f"""You are a gentle story coach for The Sanctuary. The writer is working on {where}.
Look for signs that the answer is drifting toward performance instead of honesty.

WATCH FOR:
{_DETECTION_CATEGORIES}

ENCOURAGE:
{_GENUINE_SIGNALS}

Be generous: "needsRefinement" is true only for text that is mostly performance.
If you flag anything, "softNudge" must be a single kind, specific question that helps the writer dig deeper.
Never lecture and never mention scores.

{_VERDICT_SHAPE}"""
    user = f'Coach this answer:\n\n"{text}"'
    return PromptPair(system=system, user=user)


def build_scoring_prompt(content: Mapping[int, str]) -> PromptPair:
    """Full-story scoring run once, when the writer locks the story."""
    system = f"""You are a story analyst for The Sanctuary — a platform for raw, unfiltered personal stories.
Score this story on 5 dimensions from 0-100.

CRITICAL VIOLATIONS — these should dramatically impact scores:
{_DETECTION_CATEGORIES}

SCORING CRITERIA:
{_SCORING_CRITERIA}

Return JSON only:
{{
  "authenticity": number,
  "vulnerability": number,
  "credibility": number,
  "cringeRisk": number,
  "platformPlay": number,
  "hookDetected": boolean,
  "ctaDetected": boolean,
  "summary": "One sentence overall assessment"
}}"""
    user = f"Score this story:\n\n{format_narrative(content)}"
    return PromptPair(system=system, user=user)


def build_fidelity_prompt(original: Mapping[int, str], published: str) -> PromptPair:
    """Compare an externally published rewrite against the locked original."""
    system = f"""You are a story fidelity analyst for The Sanctuary — a platform for raw, unfiltered personal stories.
Users build authentic stories through a 12-step truth process, lock them with scores, then publish
externally (LinkedIn, blog, etc.). Compare the published version against the original truth and
determine what survived.

Score the PUBLISHED version on the same 5 dimensions as the original (0-100 each), then assess fidelity.

SCORING CRITERIA (score the PUBLISHED text):
{_SCORING_CRITERIA}

FIDELITY ASSESSMENT (compare published against original):
- Did the core truth survive publication?
- Were key details preserved or softened/removed?
- Was the emotional honesty maintained or polished away?
- Were hooks, CTAs, or marketing language added that weren't in the original?
"fidelityScore" is 0-100 where 100 means the published text is fully faithful to the original.

FLAG SPECIFIC TEXT from the published version (exact quotes, at most 5 per list):
- hookExamples: text that functions as an attention hook
- ctaExamples: text that functions as a call to action
- marketingExamples: marketing jargon or corporate speak
- credibilityRiskExamples: claims that diverge from or embellish the original

Return JSON only:
{{
  "authenticity": number,
  "vulnerability": number,
  "credibility": number,
  "cringeRisk": number,
  "platformPlay": number,
  "fidelityScore": number,
  "hookExamples": ["quoted text from published version"],
  "ctaExamples": ["quoted text from published version"],
  "marketingExamples": ["quoted text from published version"],
  "credibilityRiskExamples": ["quoted text from published version"],
  "summary": "2-3 sentence assessment of how the truth fared in publication"
}}"""
    user = (
        f"ORIGINAL STORY (12-step truth process):\n\n{format_narrative(original)}"
        f"\n\n---\n\nPUBLISHED VERSION:\n\n{published}"
    )
    return PromptPair(system=system, user=user)


def build_prompt(task: PromptTask, **inputs) -> PromptPair:
    """Dispatch to the builder for *task*."""
    if task is PromptTask.GATEKEEPING:
        return build_gatekeeping_prompt(inputs["text"])
    if task is PromptTask.COACHING:
        return build_coaching_prompt(inputs["text"], inputs.get("step"))
    if task is PromptTask.SCORING:
        return build_scoring_prompt(inputs["content"])
    if task is PromptTask.FIDELITY:
        return build_fidelity_prompt(inputs["original"], inputs["published"])
    raise ValueError(f"Unknown prompt task: {task}")
