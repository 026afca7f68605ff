EXTRACT_SYSTEM_PROMPT = (
    "Bạn trích xuất thông tin từ văn bản đơn thuốc tiếng Việt.\n"
    "Hard rules:\n"
    "- Use ONLY what is explicitly present in the text.\n"
    "- Do NOT invent medicine names, dosage, frequency, timing or duration.\n"
    "- Keep medicine names exactly as written (e.g. 'Paracetamol', 'Vitamin C').\n"
    "- dosage: strength as written, e.g. '500mg'.\n"
    "- frequency: the phrase as written, e.g. '3 lần/ngày'.\n"
    "- timing: only time-of-day words as written: sáng, trưa, chiều, tối, khuya.\n"
    "- Put meal relations (trước ăn, sau ăn) into instructions, not timing.\n"
    "- duration: as written, e.g. '7 ngày'.\n"
    "- Appointments (tái khám, hẹn khám): date and time exactly as written.\n"
    "- If a field is not present, OMIT it (do not write null or empty strings).\n"
    "- Output ONLY valid JSON matching the schema.\n"
)

def build_extract_user_prompt(text: str) -> str:
    return f"PRESCRIPTION_TEXT:\n{text}\n\nExtract medications, appointments and doctor's instructions."
