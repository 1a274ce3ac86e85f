"""
Source material builders.

Each builder turns stored debates, Agora threads or articles into the user
turn handed to the generator. Synthesis material lists every contribution
under its own "### Name" header, openings before rebuttals.
"""

from typing import List, Optional

from philagora.data.models import AgoraThread, ArticleCandidate, Contribution, Debate


def news_article(candidate: ArticleCandidate) -> str:
    lines = [
        f"ARTICLE: {candidate.title}",
        f"Source: {candidate.source_name or candidate.source_id}",
        f"URL: {candidate.url}",
    ]
    if candidate.pub_date:
        lines.append(f"Published: {candidate.pub_date}")
    if candidate.description:
        lines.append("")
        lines.append(candidate.description)
    if candidate.philosophical_entry_point:
        lines.append("")
        lines.append(f"Philosophical angle: {candidate.philosophical_entry_point}")
    return "\n".join(lines)


def debate_opening(debate: Debate) -> str:
    material = (
        f"DEBATE TOPIC: {debate.title}\n\n"
        f"TRIGGER ARTICLE:\n"
        f"Title: {debate.trigger_article_title}\n"
        f"Source: {debate.trigger_article_source}"
    )
    if debate.trigger_article_url:
        material += f"\nURL: {debate.trigger_article_url}"
    return material + "\n\nPresent your opening position."


def debate_rebuttal(debate: Debate, target_name: str, target_opening: str) -> str:
    return (
        f"DEBATE TOPIC: {debate.title}\n\n"
        f"YOU ARE REBUTTING:\n"
        f"Philosopher: {target_name}\n"
        f"Their opening statement:\n{target_opening}\n\n"
        f"Respond to their specific claims."
    )


def agora_question(thread: AgoraThread) -> str:
    return (
        f"USER QUESTION:\n{thread.question}\n\n"
        f"Asked by: {thread.asked_by}\n\n"
        f"Respond to this person's situation through your philosophical framework."
    )


def find_opening(contributions: List[Contribution], philosopher_id: str) -> Optional[Contribution]:
    """The opening statement a given philosopher made, if any."""
    for contribution in contributions:
        if contribution.phase == "opening" and contribution.philosopher_id == philosopher_id:
            return contribution
    return None


def debate_synthesis(debate: Debate, contributions: List[Contribution]) -> str:
    """
    Material for a debate synthesis: topic, trigger, then every opening and
    every rebuttal, each under its author's header.
    """
    openings = [c for c in contributions if c.phase == "opening"]
    rebuttals = [c for c in contributions if c.phase == "rebuttal"]

    parts = [
        f"DEBATE TOPIC: {debate.title}\n",
        f"TRIGGER ARTICLE: {debate.trigger_article_title} ({debate.trigger_article_source})\n\n",
        "=== OPENING STATEMENTS ===\n\n",
    ]
    for post in openings:
        parts.append(f"### {post.philosopher_name} ({post.tradition}):\n{post.content}\n\n")

    if rebuttals:
        parts.append("=== REBUTTALS ===\n\n")
        for post in rebuttals:
            target = f" (rebutting {post.replying_to})" if post.replying_to else ""
            parts.append(f"### {post.philosopher_name}{target}:\n{post.content}\n\n")

    parts.append("Analyze the tensions, agreements, and unresolved questions.")
    return "".join(parts)


def agora_synthesis(thread: AgoraThread, contributions: List[Contribution]) -> str:
    parts = [
        f"USER QUESTION: {thread.question}\n",
        f"Asked by: {thread.asked_by}\n\n",
        "=== PHILOSOPHER RESPONSES ===\n\n",
    ]
    for response in contributions:
        parts.append(f"### {response.philosopher_name} ({response.tradition}):\n")
        posts = response.posts or [response.content]
        for i, post in enumerate(posts, start=1):
            if len(posts) > 1:
                parts.append(f"Response {i}: {post}\n\n")
            else:
                parts.append(f"{post}\n\n")

    parts.append("Analyze the tensions, agreements, and practical takeaways.")
    return "".join(parts)
