"""
Content Templates Module

Structural instructions layered on top of each philosopher's system prompt at
generation time, one per content type, plus the helpers that pick length
guidance and map stored content types back to template keys.

The registry is read-only and never counts words; enforcing length is the
caller's job.
"""

from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from philagora.data.models import CONTENT_TYPE_KEYS

STANCES = ("challenges", "defends", "reframes", "questions", "warns", "observes")

LENGTH_PLACEHOLDER = "{LENGTH_GUIDANCE}"
DEFAULT_TARGET_LENGTH = "medium"

STANDARD_LENGTHS = {
    "short": "Length: 40-80 words. Be terse. One paragraph at most. One sharp observation.",
    "medium": "Length: 80-150 words. A developed reaction with nuance.",
    "long": "Length: 150-250 words. A deeper analysis with more nuance. Multiple paragraphs allowed.",
}

REFLECTION_LENGTHS = {
    "short": "Length: 30-60 words. Be terse. One paragraph at most. A single aphorism.",
    "medium": "Length: 60-120 words. A developed reflection.",
    "long": "Length: 120-200 words. An extended meditation. Multiple paragraphs allowed.",
}

LENGTH_MAPS = {
    "news_reaction": STANDARD_LENGTHS,
    "cross_philosopher_reply": STANDARD_LENGTHS,
    "timeless_reflection": REFLECTION_LENGTHS,
}

# Content types whose source material is another philosopher's words
REPLY_TYPES = ("cross_philosopher_reply", "debate_rebuttal")

_JSON_ONLY = "RESPOND WITH VALID JSON ONLY. No markdown, no code fences, no extra text:"


@dataclass(frozen=True)
class ContentTemplate:
    """
    Instructions and expected output shape for one content type.

    Attributes:
        key: Template key, one of CONTENT_TYPE_KEYS.
        instructions: Text appended to the system instruction.
        expected_fields: Top-level JSON fields that must be present.
        list_fields: Fields among expected_fields that hold lists of strings.
        mention_required: True if content must open with an @-mention.
    """
    key: str
    instructions: str
    expected_fields: Tuple[str, ...]
    list_fields: Tuple[str, ...] = ()
    mention_required: bool = False

    @property
    def has_length_guidance(self) -> bool:
        return LENGTH_PLACEHOLDER in self.instructions


_POST_SHAPE = ("content", "thesis", "stance", "tag")

CONTENT_TEMPLATES: Dict[str, ContentTemplate] = {
    "news_reaction": ContentTemplate(
        key="news_reaction",
        instructions=f"""TASK: React to the news article below through your philosophical framework.

REQUIREMENTS:
- {LENGTH_PLACEHOLDER}
- Write in your own philosophical voice
- Engage directly with the substance of the article
- Do NOT include the article title, source or URL in your content; citation details are stored separately

{_JSON_ONLY}
{{
  "content": "Your reaction to the article",
  "thesis": "One punchy sentence summarizing your position",
  "stance": "challenges | defends | reframes | questions | warns | observes",
  "tag": "Political Commentary | Ethical Analysis | Metaphysical Reflection | Existential Reflection | Practical Wisdom"
}}""",
        expected_fields=_POST_SHAPE,
    ),
    "timeless_reflection": ContentTemplate(
        key="timeless_reflection",
        instructions=f"""TASK: Write a timeless observation about human nature or modern life. It is NOT tied to any news event; it stands alone as a philosophical reflection.

REQUIREMENTS:
- {LENGTH_PLACEHOLDER}
- Address the reader directly as "you"
- Write in your most characteristic voice
- It should read as if it belonged to any era

{_JSON_ONLY}
{{
  "content": "Your timeless reflection",
  "thesis": "One punchy sentence capturing the core insight",
  "stance": "challenges | defends | reframes | questions | warns | observes",
  "tag": "Timeless Wisdom | Practical Wisdom"
}}""",
        expected_fields=_POST_SHAPE,
    ),
    "cross_philosopher_reply": ContentTemplate(
        key="cross_philosopher_reply",
        instructions=f"""TASK: Reply to another philosopher's post. Engage with their specific claims: agree, disagree, complicate or reframe.

REQUIREMENTS:
- {LENGTH_PLACEHOLDER}
- Begin with @PhilosopherName, naming the philosopher you are replying to
- Address their SPECIFIC claims, not only your general position
- This is a dialogue, not two parallel monologues

{_JSON_ONLY}
{{
  "content": "Your reply starting with @PhilosopherName",
  "thesis": "One sentence summarizing your response",
  "stance": "challenges | defends | reframes | questions | warns | observes",
  "tag": "Cross-Philosopher Reply"
}}""",
        expected_fields=_POST_SHAPE,
        mention_required=True,
    ),
    "debate_opening": ContentTemplate(
        key="debate_opening",
        instructions=f"""TASK: You are taking part in a structured philosophical debate on Philagora. The debate topic and trigger article follow. Present your opening position: what does your framework reveal about this topic?

REQUIREMENTS:
- Length: 150-250 words. This is your opening statement, so be substantive.
- Paragraph breaks are allowed.
- Refer to the relevant parts of the trigger article
- Set up your position for cross-examination and rebuttal

{_JSON_ONLY}
{{
  "content": "Your opening statement (150-250 words)"
}}""",
        expected_fields=("content",),
    ),
    "debate_rebuttal": ContentTemplate(
        key="debate_rebuttal",
        instructions=f"""TASK: You are answering another philosopher's position in a structured debate. Their argument follows. Engage with their SPECIFIC claims.

REQUIREMENTS:
- Begin with @PhilosopherName
- Length: 100-200 words
- Do not simply restate your own position; show where they go wrong and why
- Find the weak points in their argument and press on them
- You may concede strong points before you pivot

{_JSON_ONLY}
{{
  "content": "Your rebuttal starting with @PhilosopherName (100-200 words)"
}}""",
        expected_fields=("content",),
        mention_required=True,
    ),
    "agora_response": ContentTemplate(
        key="agora_response",
        instructions=f"""TASK: A user has asked a personal question in Philagora's Agora. Answer through your philosophical framework while staying grounded in their situation. Be genuinely helpful, not merely theoretical.

REQUIREMENTS:
- Write one or two response posts. Use two only if the question deserves a multi-part answer.
- Length: 100-200 words per post
- Apply your framework to their SPECIFIC situation
- Speak directly to the person asking
- The first post addresses their core concern; a second post adds nuance or a practical takeaway

{_JSON_ONLY}
{{
  "posts": ["First response (100-200 words)", "Optional second response (100-200 words)"]
}}""",
        expected_fields=("posts",),
        list_fields=("posts",),
    ),
    "debate_synthesis": ContentTemplate(
        key="debate_synthesis",
        instructions=f"""TASK: This is NOT a philosopher's voice. This is the editorial voice of Philagora. You have read every philosopher's contribution below. Identify:
1. tensions: where these thinkers fundamentally disagree, and why
2. agreements: what they converge on despite different frameworks
3. questionsForReflection: the questions the debate leaves open

REQUIREMENTS:
- Be precise and name the philosophers. Not "some disagree" but "Russell defends X while Plato insists on Y."
- Also provide a synthesisSummary with three fields:
  - agree: one sentence on what they share
  - diverge: one sentence on the key fault line
  - unresolvedQuestion: the question the debate leaves open
- Length: 1-2 sentences per tension, agreement and question.

{_JSON_ONLY}
{{
  "tensions": ["Tension 1...", "Tension 2..."],
  "agreements": ["Agreement 1..."],
  "questionsForReflection": ["Question 1...", "Question 2..."],
  "synthesisSummary": {{
    "agree": "One sentence on what they share...",
    "diverge": "One sentence on the key fault line...",
    "unresolvedQuestion": "The question the debate leaves open..."
  }}
}}""",
        expected_fields=("tensions", "agreements", "questionsForReflection"),
        list_fields=("tensions", "agreements", "questionsForReflection"),
    ),
    "agora_synthesis": ContentTemplate(
        key="agora_synthesis",
        instructions=f"""TASK: This is NOT a philosopher's voice. This is the editorial voice of Philagora. You have read every philosopher's answer to a user's question below. Identify:
1. tensions: where these thinkers offer conflicting advice or framings
2. agreements: what they converge on despite different frameworks
3. practicalTakeaways: concrete advice the questioner can act on

REQUIREMENTS:
- Be precise and name the philosophers. Not "some disagree" but "Russell advises X while Plato recommends Y."
- Distill 2-4 practical takeaways the questioner can actually use
- Length: 1-2 sentences per tension, agreement and takeaway.

{_JSON_ONLY}
{{
  "tensions": ["Tension 1...", "Tension 2..."],
  "agreements": ["Agreement 1..."],
  "practicalTakeaways": ["Takeaway 1...", "Takeaway 2..."]
}}""",
        expected_fields=("tensions", "agreements", "practicalTakeaways"),
        list_fields=("tensions", "agreements", "practicalTakeaways"),
    ),
}


def resolve(content_type_key: str) -> ContentTemplate:
    """
    Look up the template for a content type key.

    Raises:
        KeyError: If the key is not one of CONTENT_TYPE_KEYS.
    """
    try:
        return CONTENT_TEMPLATES[content_type_key]
    except KeyError:
        raise KeyError(f"Unknown content type key: {content_type_key}") from None


def get_length_guidance(content_type_key: str, target_length: Optional[str] = None) -> str:
    """
    Length guidance sentence for a template and target length.

    Templates without their own length map, and unknown target lengths, get
    the standard medium guidance.
    """
    lengths = LENGTH_MAPS.get(content_type_key, STANDARD_LENGTHS)
    return lengths.get(target_length or DEFAULT_TARGET_LENGTH, STANDARD_LENGTHS[DEFAULT_TARGET_LENGTH])


def render_instructions(content_type_key: str, target_length: Optional[str] = None) -> str:
    """Template instructions with length guidance substituted in."""
    template = resolve(content_type_key)
    if not template.has_length_guidance:
        return template.instructions
    return template.instructions.replace(
        LENGTH_PLACEHOLDER, get_length_guidance(content_type_key, target_length)
    )


def resolve_content_type_key(raw_type: Optional[str], ui_label: Optional[str] = None) -> str:
    """
    Map a stored content type (and the label an editor picked) to a template key.

    The log stores "post" for both news reactions and cross-philosopher
    replies, so the label decides between them. Total: anything unknown
    falls back to news_reaction.
    """
    if raw_type == "post":
        if ui_label == "Cross-Philosopher Reply":
            return "cross_philosopher_reply"
        return "news_reaction"
    if raw_type == "reflection":
        return "timeless_reflection"
    if raw_type in CONTENT_TYPE_KEYS:
        return raw_type
    return "news_reaction"
