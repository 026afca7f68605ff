# app/services/llm/extraction_schema.py

PRESCRIPTION_SCHEMA = {
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "medications": {
            "type": "array",
            "items": {
                "type": "object",
                "additionalProperties": False,
                "properties": {
                    "name": {"type": "string"},
                    "dosage": {"type": "string"},
                    "quantity": {"type": "number"},
                    "unit": {"type": "string"},
                    "frequency": {"type": "string"},
                    "timing": {"type": "array", "items": {"type": "string"}},
                    "duration": {"type": "string"},
                    "instructions": {"type": "array", "items": {"type": "string"}},
                },
                # optional fields are omitted when not in the text
                "required": ["name"],
            },
        },
        "appointments": {
            "type": "array",
            "items": {
                "type": "object",
                "additionalProperties": False,
                "properties": {
                    "type": {"type": "string"},
                    "date": {"type": "string", "description": "DD-MM-YYYY as written"},
                    "time": {"type": "string"},
                    "location": {"type": "string"},
                    "doctor": {"type": "string"},
                    "notes": {"type": "string"},
                },
            },
        },
        "instructions": {"type": "array", "items": {"type": "string"}},
    },
    "required": ["medications"],
}
