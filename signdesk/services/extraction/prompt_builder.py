"""Instruction text sent to the vision model for work order extraction."""

from typing import Dict, Sequence

PROMPT_VERSION: Dict[str, str] = {
    "gemini": "gemini-2025.1",
    "openai": "openai-2025.1",
}

_INTRO = {
    "gemini": (
        "You are analyzing work order documents for a signage installation company. "
        "You may receive multiple files including:\n"
        "- Work order documents (PDF/images)\n"
        "- Site plans and blueprints\n"
        "- Specifications\n"
        "- Site photos\n"
        "- Other relevant documents\n\n"
        "Analyze ALL provided files together and extract comprehensive information."
    ),
    "openai": (
        "You are analyzing work order images for a signage installation company. "
        "The images may show work order pages, site plans, specifications or site photos.\n\n"
        "Analyze ALL provided images together and extract comprehensive information."
    ),
}

_SCHEMA = """Return a single JSON object with these keys.

**Fields stored directly on the work order (include only when found in the documents):**
work_order_number: the official work order number/ID (e.g. "WO-2024-001", "12345")
site_address: the full job site address where work will be performed
work_order_date: the date on the work order document (format: YYYY-MM-DD)
planned_date: the scheduled installation date if stated (format: YYYY-MM-DD)
skills_required: array of strings, technician skills needed (e.g. "Electrical", "Welding", "High Reach")
permits_required: array of strings, required permits
equipment_required: array of strings, required equipment (e.g. "Scissor Lift", "Bucket Truck", "Ladder")
materials_required: array of strings, required materials/parts
recommended_techs: integer, number of technicians recommended for the job
scope_of_work: detailed text description of the scope of work

**Additional analysis fields:**
jobType: type of signage work
location: full address (same as site_address)
orderedBy: client name
contactInfo: phone/email
summary: brief summary of the work
estimatedHours: number
safety_notes: safety warnings
risk_factors: array of strings
additionalDetails: any other relevant information

suggested_tasks: array of objects representing actionable steps. Each object must have:
  - name: string (concise task name)
  - description: string (detailed instructions)
  - priority: 'Low', 'Medium', 'High', or 'Emergency'

Return ONLY valid JSON, no markdown formatting or code blocks."""


def build_prompt(provider: str, advisory_notes: Sequence[str] = ()) -> str:
    """Build the extraction instruction for ``provider``.

    Advisory notes (for example files the provider cannot inspect) are
    appended verbatim; nothing else varies per request.

    Raises:
        ValueError: If the provider has no template
    """
    if provider not in _INTRO:
        raise ValueError(f"No extraction prompt for provider: {provider}")

    prompt = f"{_INTRO[provider]}\n\n{_SCHEMA}"
    notes = [note.strip() for note in advisory_notes if note and note.strip()]
    if notes:
        prompt += "\n\nNotes about the provided files:\n" + "\n".join(f"- {note}" for note in notes)
    return prompt
