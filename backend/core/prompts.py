"""Instruction templates for agents, summaries and the facilitator.

Templates exist in English and Japanese. Placeholders use ``str.format``
named fields; agent output is only ever substituted as a value.
"""

from typing import Iterable, Optional, Sequence

from .models import (
    DialogueStage,
    Language,
    Message,
    MessageRole,
    PersonalityProfile,
)

STAGE_TITLES: dict[Language, dict[DialogueStage, str]] = {
    Language.EN: {
        DialogueStage.INDIVIDUAL_THOUGHT: "Stage 1: Individual Thought",
        DialogueStage.MUTUAL_REFLECTION: "Stage 2: Mutual Reflection",
        DialogueStage.MUTUAL_REFLECTION_SUMMARY: "Stage 2.5: Mutual Reflection Summary",
        DialogueStage.CONFLICT_RESOLUTION: "Stage 3: Conflict Resolution",
        DialogueStage.CONFLICT_RESOLUTION_SUMMARY: "Stage 3.5: Conflict Resolution Summary",
        DialogueStage.SYNTHESIS_ATTEMPT: "Stage 4: Synthesis Attempt",
        DialogueStage.SYNTHESIS_ATTEMPT_SUMMARY: "Stage 4.5: Synthesis Attempt Summary",
        DialogueStage.OUTPUT_GENERATION: "Stage 5: Output Generation",
        DialogueStage.FINALIZE: "Stage 5.1: Finalize",
    },
    Language.JA: {
        DialogueStage.INDIVIDUAL_THOUGHT: "ステージ1: 個別思考",
        DialogueStage.MUTUAL_REFLECTION: "ステージ2: 相互反省",
        DialogueStage.MUTUAL_REFLECTION_SUMMARY: "ステージ2.5: 相互反省の要約",
        DialogueStage.CONFLICT_RESOLUTION: "ステージ3: 対立解決",
        DialogueStage.CONFLICT_RESOLUTION_SUMMARY: "ステージ3.5: 対立解決の要約",
        DialogueStage.SYNTHESIS_ATTEMPT: "ステージ4: 統合の試み",
        DialogueStage.SYNTHESIS_ATTEMPT_SUMMARY: "ステージ4.5: 統合の試みの要約",
        DialogueStage.OUTPUT_GENERATION: "ステージ5: 出力生成",
        DialogueStage.FINALIZE: "ステージ5.1: 最終化",
    },
}

PERSONALITY_PREAMBLE = {
    Language.EN: (
        "You are {name}{reading}, one participant in a structured multi-agent dialogue.\n"
        "Reasoning style: {style}. Priority: {priority}.\n"
        "Personality: {personality}\n"
        "Preferences: {preferences}\n"
        "Tone: {tone}\n"
        "Communication style: {communication_style}\n\n"
        "Engage with the substance of ideas rather than surface differences. "
        "Stay in character. Respond only in English."
    ),
    Language.JA: (
        "あなたは{name}{reading}です。構造化された多エージェント対話の参加者の一人です。\n"
        "推論スタイル: {style}。優先事項: {priority}。\n"
        "性格: {personality}\n"
        "好み: {preferences}\n"
        "口調: {tone}\n"
        "コミュニケーションスタイル: {communication_style}\n\n"
        "表面的な違いではなく、考えの本質に向き合ってください。"
        "キャラクターを保ち、必ず日本語のみで回答してください。"
    ),
}

_EN_FOOTER = "\nKeep it under 150 words. End with **Confidence Level**: 0-100% and one line of justification."
_JA_FOOTER = "\n150語以内でまとめてください。最後に **確信度**: 0-100% と一行の理由を書いてください。"

STAGE_TEMPLATES: dict[Language, dict[DialogueStage, str]] = {
    Language.EN: {
        DialogueStage.INDIVIDUAL_THOUGHT: (
            "{title}\n\nThink about the query on your own, from your own perspective.\n\n"
            "QUERY: {query}\n\nRECENT DIALOGUE:\n{context}\n{summary_context}"
            "Share your analysis and how you would approach the question." + _EN_FOOTER
        ),
        DialogueStage.MUTUAL_REFLECTION: (
            "{title}\n\nRead the other agents' thoughts and respond to them by name.\n\n"
            "QUERY: {query}\n\nOTHER AGENTS' THOUGHTS:\n{peer_thoughts}\n\n"
            "RECENT DIALOGUE:\n{context}\n{summary_context}"
            "For each agent you address, say whether you agree or disagree and why, "
            "and ask them a direct question where something is unclear." + _EN_FOOTER
        ),
        DialogueStage.CONFLICT_RESOLUTION: (
            "{title}\n\nWork through the tensions identified so far.\n\n"
            "QUERY: {query}\n\nIDENTIFIED CONFLICTS:\n{conflicts}\n\n"
            "RECENT DIALOGUE:\n{context}\n{summary_context}"
            "Address the agents involved directly and propose a resolution or a "
            "principled compromise." + _EN_FOOTER
        ),
        DialogueStage.SYNTHESIS_ATTEMPT: (
            "{title}\n\nBuild a framework that keeps the essential insight of every perspective.\n\n"
            "QUERY: {query}\n\nSYNTHESIS DATA:\n{synthesis_data}\n\n"
            "RECENT DIALOGUE:\n{context}\n{summary_context}"
            "Name the agents whose ideas you integrate and ask for their feedback "
            "where the fit is uncertain." + _EN_FOOTER
        ),
        DialogueStage.OUTPUT_GENERATION: (
            "{title}\n\nProduce the output of this dialogue and vote for a finalizer.\n\n"
            "QUERY: {query}\n\nFINAL DATA:\n{final_data}\n\n"
            "RECENT DIALOGUE:\n{context}\n{summary_context}"
            "CANDIDATES:\n{candidates}\n\n"
            "Cover: 1. Core insights 2. How the perspectives evolved 3. The path forward "
            "4. Your vote for the agent best suited to write the final answer.\n"
            "Declare the vote on its own line exactly as `Agent Vote: <agent-id>` followed "
            "by your reason. Do NOT vote for yourself ({self_id})."
        ),
        DialogueStage.FINALIZE: (
            "{title}\n\nYou were selected by vote to write the final answer.\n\n"
            "QUERY: {query}\n\nVOTING RESULTS:\n{voting_results}\n\n"
            "FINAL STAGE RESPONSES:\n{final_data}\n{summary_context}"
            "Write a complete, well-structured answer to the query that integrates the "
            "key insights of the discussion in your own voice."
        ),
    },
    Language.JA: {
        DialogueStage.INDIVIDUAL_THOUGHT: (
            "{title}\n\n自分自身の視点から、質問について独自に考えてください。\n\n"
            "質問: {query}\n\n最近の対話:\n{context}\n{summary_context}"
            "分析と、この質問へのアプローチを述べてください。" + _JA_FOOTER
        ),
        DialogueStage.MUTUAL_REFLECTION: (
            "{title}\n\n他のエージェントの考えを読み、名前を挙げて応答してください。\n\n"
            "質問: {query}\n\n他のエージェントの考え:\n{peer_thoughts}\n\n"
            "最近の対話:\n{context}\n{summary_context}"
            "応答する各エージェントについて、賛成か反対かとその理由を述べ、"
            "不明な点があれば直接質問してください。" + _JA_FOOTER
        ),
        DialogueStage.CONFLICT_RESOLUTION: (
            "{title}\n\nこれまでに特定された対立に取り組んでください。\n\n"
            "質問: {query}\n\n特定された対立:\n{conflicts}\n\n"
            "最近の対話:\n{context}\n{summary_context}"
            "関係するエージェントに直接呼びかけ、解決策または原則に基づく妥協案を提案してください。"
            + _JA_FOOTER
        ),
        DialogueStage.SYNTHESIS_ATTEMPT: (
            "{title}\n\nすべての視点の本質を保つ枠組みを構築してください。\n\n"
            "質問: {query}\n\n統合データ:\n{synthesis_data}\n\n"
            "最近の対話:\n{context}\n{summary_context}"
            "統合するアイデアのエージェント名を挙げ、適合が不確かな点は意見を求めてください。"
            + _JA_FOOTER
        ),
        DialogueStage.OUTPUT_GENERATION: (
            "{title}\n\nこの対話の成果をまとめ、最終回答の担当者に投票してください。\n\n"
            "質問: {query}\n\n最終データ:\n{final_data}\n\n"
            "最近の対話:\n{context}\n{summary_context}"
            "候補:\n{candidates}\n\n"
            "1. 核心的な洞察 2. 視点の変化 3. 今後の方向性 4. 最終回答を書くのに最適なエージェントへの投票\n"
            "投票は独立した行に `投票: <agent-id>` の形式で書き、理由を続けてください。"
            "自分自身 ({self_id}) に投票してはいけません。"
        ),
        DialogueStage.FINALIZE: (
            "{title}\n\nあなたは投票により最終回答の担当に選ばれました。\n\n"
            "質問: {query}\n\n投票結果:\n{voting_results}\n\n"
            "最終ステージの回答:\n{final_data}\n{summary_context}"
            "議論の重要な洞察を統合し、あなた自身の声で質問への完全で構造化された回答を書いてください。"
        ),
    },
}

SUMMARY_TEMPLATE = {
    Language.EN: (
        "Summarize the following dialogue stage.\n\n"
        "Stage: {title}\nParticipating agents: {agent_names}\n\n"
        "Dialogue:\n{logs}\n\n"
        "Summarize each agent's main position in one or two sentences, one line per agent, "
        "in the form:\n- <Agent Name>: <main position>\n"
        "Mention who disagreed with whom and which questions remain open."
    ),
    Language.JA: (
        "次の対話ステージを要約してください。\n\n"
        "ステージ: {title}\n参加エージェント: {agent_names}\n\n"
        "対話:\n{logs}\n\n"
        "各エージェントの主な立場を1〜2文で、エージェントごとに1行で次の形式で要約してください:\n"
        "- <エージェント名>: <主な立場>\n"
        "誰が誰に反対したか、未解決の問いは何かも含めてください。出力は必ず日本語で書いてください。"
    ),
}

TIE_BREAK_TEMPLATE = {
    Language.EN: (
        "Several agents received the same number of votes to write the final answer.\n\n"
        "VOTES (voter -> candidate: reasoning):\n{vote_summary}\n\n"
        "VOTE COUNT:\n{tally}\n\n"
        "AVAILABLE AGENTS:\n{candidates}\n\n"
        "Read the reasoning behind each vote. If one candidate is clearly better supported, "
        "name only that candidate. If they are genuinely co-equal, name ALL of them.\n"
        "Answer with agent ids only, comma-separated, and nothing else."
    ),
    Language.JA: (
        "最終回答の担当として、複数のエージェントが同数の票を得ました。\n\n"
        "投票 (投票者 -> 候補: 理由):\n{vote_summary}\n\n"
        "得票数:\n{tally}\n\n"
        "候補エージェント:\n{candidates}\n\n"
        "各投票の理由を読んでください。明らかに支持の強い候補がいればその候補だけを、"
        "本当に同等であれば全員を挙げてください。\n"
        "エージェントIDのみをカンマ区切りで答え、他には何も書かないでください。"
    ),
}

SUMMARY_CONTEXT_HEADER = {
    Language.EN: "\nSUMMARIES OF EARLIER STAGES:\n",
    Language.JA: "\nこれまでのステージの要約:\n",
}

NO_CONTEXT = {Language.EN: "(none yet)", Language.JA: "(まだありません)"}


def stage_title(stage: DialogueStage, language: Language = Language.EN) -> str:
    return STAGE_TITLES[language][stage]


def personality_preamble(profile: PersonalityProfile, language: Language = Language.EN) -> str:
    reading = f" ({profile.aliases[0]})" if profile.aliases else ""
    return PERSONALITY_PREAMBLE[language].format(
        name=profile.name,
        reading=reading,
        style=profile.style.value,
        priority=profile.priority.value,
        personality=profile.personality or "-",
        preferences=", ".join(profile.preferences) or "-",
        tone=profile.tone or "-",
        communication_style=profile.communication_style or "-",
    )


def format_context(
    messages: Sequence[Message],
    names: Optional[dict[str, str]] = None,
    language: Language = Language.EN,
    limit: int = 600,
) -> str:
    """Render transcript messages as "Author: text" lines."""
    if not messages:
        return NO_CONTEXT[language]
    names = names or {}
    lines = []
    for message in messages:
        if message.role == MessageRole.USER:
            author = "User"
        else:
            author = names.get(message.author, message.author)
        text = message.content.strip()
        if len(text) > limit:
            text = text[:limit] + "..."
        lines.append(f"{author}: {text}")
    return "\n".join(lines)


def format_summary_context(summaries: Iterable[str], language: Language = Language.EN) -> str:
    summaries = [s for s in summaries if s and s.strip()]
    if not summaries:
        return ""
    return SUMMARY_CONTEXT_HEADER[language] + "\n\n".join(summaries) + "\n\n"


def render_stage(stage: DialogueStage, language: Language = Language.EN, **values: str) -> str:
    """Fill a stage template; missing placeholders render as empty strings."""
    template = STAGE_TEMPLATES[language][stage]
    fields = {
        "title": stage_title(stage, language),
        "query": "",
        "context": NO_CONTEXT[language],
        "summary_context": "",
        "peer_thoughts": "",
        "conflicts": "",
        "synthesis_data": "",
        "final_data": "",
        "candidates": "",
        "voting_results": "",
        "self_id": "",
    }
    fields.update(values)
    return template.format(**fields)


def render_summary(
    stage: DialogueStage,
    agent_names: Sequence[str],
    logs: str,
    language: Language = Language.EN,
) -> str:
    return SUMMARY_TEMPLATE[language].format(
        title=stage_title(stage, language),
        agent_names=", ".join(agent_names),
        logs=logs,
    )


def render_tie_break(
    vote_summary: str,
    tally: str,
    candidates: str,
    language: Language = Language.EN,
) -> str:
    return TIE_BREAK_TEMPLATE[language].format(
        vote_summary=vote_summary,
        tally=tally,
        candidates=candidates,
    )
