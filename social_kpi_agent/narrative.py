from __future__ import annotations

from typing import Any

from langchain_core.output_parsers import StrOutputParser
from langchain_core.prompts import ChatPromptTemplate

from social_kpi_agent.config import AgentConfig
from social_kpi_agent.errors import CollaboratorFailure
from social_kpi_agent.llm import build_llm
from social_kpi_agent.models import ReportRecord


INSIGHTS_PLACEHOLDER = "Insights generation failed. Please check API configuration."
NEXT_STEPS_PLACEHOLDER = "Next steps generation failed. Please check API configuration."
DISABLED_PLACEHOLDER = "Narrative generation was disabled for this run."

INSIGHTS_PROMPT = ChatPromptTemplate.from_messages(
    [
        (
            "user",
            """
Based on the following social media analytics data for {month} ({period}):

- Followers: {followers}
- Reach: {reach}
- Engagements: {engagements}
- Engagement Rate: {engagement_rate}%
- Top performing posts: {top_posts_count} posts with high engagement
- Top hashtags: {top_hashtags_count} hashtags analyzed

Please provide insights and recommendations for improving social media performance. Focus on what's working well and what could be improved.
""".strip(),
        )
    ]
)

NEXT_STEPS_PROMPT = ChatPromptTemplate.from_messages(
    [
        (
            "user",
            """
Based on the social media analytics data for {month} ({period}):

- Followers: {followers}
- Reach: {reach}
- Engagements: {engagements}
- Engagement Rate: {engagement_rate}%

Please suggest specific next steps and action items to optimize KPIs for the next month. Include concrete, actionable recommendations.
""".strip(),
        )
    ]
)


def _prompt_payload(report: ReportRecord) -> dict[str, Any]:
    return {
        "month": report.month,
        "period": report.period,
        "followers": int(report.followers.value),
        "reach": int(report.reach.value),
        "engagements": int(report.engagements.value),
        "engagement_rate": f"{report.engagement_rate.value:.2f}",
        "top_posts_count": len(report.top_posts),
        "top_hashtags_count": len(report.top_hashtags),
    }


def _run_prompt(prompt: ChatPromptTemplate, llm: Any, payload: dict[str, Any], label: str) -> str:
    chain = prompt | llm | StrOutputParser()
    try:
        text = chain.invoke(payload)
    except Exception as exc:
        raise CollaboratorFailure(f"{label} request failed: {exc}") from exc
    text = str(text or "").strip()
    if not text:
        raise CollaboratorFailure(f"{label} request returned no content")
    return text


def generate_insights(report: ReportRecord, llm: Any) -> str:
    return _run_prompt(INSIGHTS_PROMPT, llm, _prompt_payload(report), "Insights")


def generate_next_steps(report: ReportRecord, llm: Any) -> str:
    return _run_prompt(NEXT_STEPS_PROMPT, llm, _prompt_payload(report), "Next steps")


def fill_narrative(report: ReportRecord, config: AgentConfig, llm: Any = None) -> ReportRecord:
    """Attach both narrative blocks; every failure degrades to placeholder text."""
    if not config.use_llm_narrative:
        print("LLM narrative: disabled.")
        return report.with_narrative(DISABLED_PLACEHOLDER, DISABLED_PLACEHOLDER)

    if llm is None:
        try:
            llm = build_llm(config)
        except Exception as exc:
            print(f"Warning: Could not generate insights: {exc}")
            print(f"Warning: Could not generate next steps: {exc}")
            return report.with_narrative(INSIGHTS_PLACEHOLDER, NEXT_STEPS_PLACEHOLDER)

    try:
        insights = generate_insights(report, llm)
    except CollaboratorFailure as exc:
        print(f"Warning: Could not generate insights: {exc}")
        insights = INSIGHTS_PLACEHOLDER

    try:
        next_steps = generate_next_steps(report, llm)
    except CollaboratorFailure as exc:
        print(f"Warning: Could not generate next steps: {exc}")
        next_steps = NEXT_STEPS_PLACEHOLDER

    return report.with_narrative(insights, next_steps)
