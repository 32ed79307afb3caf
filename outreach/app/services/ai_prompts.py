"""Prompt text and prompt builders for email generation, replies and profile extraction."""
from typing import Any

EMAIL_SYSTEM_PROMPT = """You are an expert professional email writer. You write compelling, personalized emails that help people make meaningful professional connections. You are good at:

1. Opening with a personal hook that references something specific about the recipient's work
2. Stating the sender's relevant qualifications and genuine interest clearly
3. Ending with a call to action that invites a reply
4. Matching tone and formality to the context
5. Staying concise while still being substantive

GUIDELINES:
- Personalize the email using the recipient's background and work
- Point out concrete overlaps between the sender's experience and the recipient's interests
- Be genuine; avoid generic platitudes
- Keep emails between 150 and 300 words unless more detail is truly needed
- Use clear paragraphs
- Never invent or exaggerate the sender's qualifications
- When information is limited, use what is known instead of guessing
- NEVER use placeholder text such as [your field] or [specific area]; write generically instead
- NEVER leave any text in square brackets in the output

OUTPUT FORMAT:
Return valid JSON with exactly two fields:
- "subject": a compelling subject line (max 60 characters, must not start with a colon)
- "body": the email body as plain text with real line breaks

Do not include any text outside the JSON object. Do not use markdown code fences."""

REPLY_SYSTEM_PROMPT = """You help a professional reply to an ongoing email conversation.
Write only the reply body as plain text: no subject line, no quoted history, no placeholders in square brackets.
Match the tone of the conversation, answer any direct questions using only facts the sender has provided,
and keep the reply under 200 words."""

PROFILE_EXTRACTION_PROMPT = """Extract a professional profile from the resume text below.
Return valid JSON only, with these fields (use empty strings or empty lists when unknown):
{
  "headline": "one-line professional headline",
  "bio": "2-4 sentence professional summary in first person",
  "skills": ["skill", ...],
  "interests": ["interest", ...],
  "education": [{"institution": "", "degree": "", "field": "", "year": ""}],
  "experience": [{"company": "", "role": "", "duration": "", "description": ""}],
  "goals": "",
  "linkedin_url": "",
  "github_url": "",
  "portfolio_url": ""
}
Use only information present in the resume. Do not include any text outside the JSON object.

Resume text:
"""

PURPOSE_DESCRIPTIONS = {
    "JOB_APPLICATION": "Applying for a job or asking about career opportunities at the recipient's organization",
    "RESEARCH_INQUIRY": "Interest in research collaboration, PhD/postdoc positions, or learning about the recipient's research",
    "COLLABORATION": "Proposing a professional collaboration, partnership or joint project",
    "MENTORSHIP": "Seeking mentorship, career guidance or professional advice",
    "NETWORKING": "Building a professional connection in the industry",
    "OTHER": "General professional outreach",
}

TONE_DESCRIPTIONS = {
    "FORMAL": "Professional and formal, suitable for senior professionals or academic settings",
    "FRIENDLY": "Warm and approachable while staying professional, good for peers or startups",
    "CONCISE": "Brief and to the point, respecting the recipient's time while staying personable",
    "ENTHUSIASTIC": "Energetic and passionate, showing real excitement about the opportunity",
}

DOCUMENT_EXCERPT_CHARS = 500


def build_user_context_section(user: dict[str, Any]) -> str:
    sections: list[str] = []
    if user.get("name"):
        sections.append(f"Name: {user['name']}")
    if user.get("headline"):
        sections.append(f"Professional Headline: {user['headline']}")
    if user.get("bio"):
        sections.append(f"Bio: {user['bio']}")
    if user.get("skills"):
        sections.append(f"Skills: {', '.join(user['skills'])}")
    if user.get("interests"):
        sections.append(f"Interests: {', '.join(user['interests'])}")
    if user.get("education"):
        edu = "; ".join(
            f"{e.get('degree', '')} in {e.get('field', '')} from {e.get('institution', '')} ({e.get('year', '')})"
            for e in user["education"]
        )
        sections.append(f"Education: {edu}")
    if user.get("experience"):
        exp = "; ".join(
            f"{e.get('role', '')} at {e.get('company', '')} ({e.get('duration', '')}): {e.get('description', '')}"
            for e in user["experience"]
        )
        sections.append(f"Experience: {exp}")
    if user.get("goals"):
        sections.append(f"Goals: {user['goals']}")

    links = []
    for label, key in (("LinkedIn", "linkedin_url"), ("GitHub", "github_url"), ("Portfolio", "portfolio_url")):
        if user.get(key):
            links.append(f"{label}: {user[key]}")
    if links:
        sections.append(f"Links: {', '.join(links)}")

    if user.get("documents"):
        docs = "\n\n".join(
            f"[{d['type']}] {d['name']}: {d['content'][:DOCUMENT_EXCERPT_CHARS]}..."
            for d in user["documents"]
        )
        sections.append(f"Relevant Documents:\n{docs}")
    return "\n\n".join(sections)


def build_recipient_context_section(recipient: dict[str, Any]) -> str:
    sections = [f"Name: {recipient['name']}", f"Email: {recipient['email']}"]
    for label, key in (
        ("Organization", "organization"),
        ("Role/Position", "role"),
        ("Research/Work Focus", "work_focus"),
        ("Website", "website"),
        ("LinkedIn", "linkedin_url"),
        ("Additional Notes", "additional_notes"),
    ):
        if recipient.get(key):
            sections.append(f"{label}: {recipient[key]}")
    return "\n".join(sections)


def build_email_prompt(
    user_context: dict[str, Any],
    recipient_context: dict[str, Any],
    purpose: str,
    tone: str,
    additional_context: str | None = None,
) -> str:
    extra = f"## Additional Context\n{additional_context}\n\n" if additional_context else ""
    return (
        "Generate a professional email with the following context:\n\n"
        f"## Email Purpose\n{PURPOSE_DESCRIPTIONS[purpose]}\n\n"
        f"## Desired Tone\n{TONE_DESCRIPTIONS[tone]}\n\n"
        f"## Sender's Background\n{build_user_context_section(user_context)}\n\n"
        f"## Recipient's Information\n{build_recipient_context_section(recipient_context)}\n\n"
        f"{extra}"
        "Write a compelling, personalized email that:\n"
        "1. Opens with a hook referencing the recipient's work or background\n"
        "2. States the purpose of the email clearly\n"
        "3. Highlights the sender's relevant qualifications and experience\n"
        "4. Shows genuine alignment with the recipient's work\n"
        "5. Ends with a clear call to action\n\n"
        'Return the response as JSON with "subject" and "body" fields only.'
    )


def build_reply_prompt(
    sender_name: str | None,
    recipient_name: str,
    thread: list[dict[str, Any]],
    instructions: str | None = None,
) -> str:
    history = "\n\n".join(
        f"From: {'Me' if m.get('is_from_me') else m.get('from', recipient_name)}\n{(m.get('body') or m.get('snippet') or '').strip()[:2000]}"
        for m in thread
    )
    parts = [
        f"I am {sender_name or 'the sender'} and I am corresponding with {recipient_name}.",
        f"Conversation so far (oldest first):\n\n{history}",
    ]
    if instructions:
        parts.append(f"What I want to say in the reply:\n{instructions}")
    parts.append("Write my reply.")
    return "\n\n".join(parts)
