"""Builders for WhatsApp Cloud API webhook bodies used across tests."""


def text_message(sender="5215512345678", message_id="wamid.in1", body="Hola", timestamp="1736935200"):
    return {
        "from": sender,
        "id": message_id,
        "timestamp": timestamp,
        "type": "text",
        "text": {"body": body},
    }


def webhook_body(messages, contacts=None, phone_number_id="106540352242922", field="messages",
                 obj="whatsapp_business_account"):
    """Build a WhatsApp Cloud API notification."""
    value = {
        "messaging_product": "whatsapp",
        "metadata": {"display_phone_number": "15550100", "phone_number_id": phone_number_id},
        "messages": messages,
    }
    if contacts is not None:
        value["contacts"] = contacts
    return {
        "object": obj,
        "entry": [{"id": "102290129340398", "changes": [{"field": field, "value": value}]}],
    }
