"""사용자/상담원에게 노출되는 문구"""
from typing import Optional

from app.core.chat import ChatCard


# 상담원 워크스페이스에 표시되는 봇 이름 (브릿지의 business 신원)
BOT_DISPLAY_NAME = "bot"

SUPPORT_CHANNEL_PREFIX = "support-"
SUPPORT_TOPIC = "Support request"

LIVE_CHAT_CARD = ChatCard(
    title="Live Chat",
    description="Click the button below to start a chat with the support team",
    color=0x9580FF,
)

START_LIVE_CHAT = "📩 Start Live Chat"
CLOSE_REQUEST = "Close Request"
CANCEL = "Cancel"
EMBED_SENT = "Sent the embed to the current channel"

SUPPORT_REQUEST_FIRST_MESSAGE = (
    "We've got your support request! An agent will be with you soon. "
    "In the meantime, let us know the details of your issue so we can help you faster."
)
SUPPORT_REQUEST_ASSIGNED = "Your support request was assigned to an agent"
SUPPORT_REQUEST_RESOLVED = "Your support request was resolved and will be deleted in 60 seconds."
SUPPORT_REQUEST_DELETE_CANCELLED = (
    "Your chat history will remain, but you won't be able to reply. "
    "If you still need assistance, please create a new support request."
)

CUSTOMER_CLOSED_REQUEST = "The customer closed this support request. You won't be able to reply."
CUSTOMER_CLOSE_EXISTING_QUESTION = (
    "You already have an open support request. Would you like to close it to start a new one?"
)
UNABLE_TO_REMOVE_EXISTING_REQUESTS = "Sorry, we were unable to remove your existing support requests."
MESSAGE_FAILED_TO_SEND = "Your message failed to send. Please try removing any attachments and sending again."


def support_request_created(room_link: str) -> str:
    return f"Your support ticket was created {room_link}"


def customer_opened_request(display_name: str, username: str) -> str:
    """상담원 화면용 안내 (숨김 메시지)"""
    return f"Customer {display_name} ({username}) opens live chat via Discord"


def exceeded_attachment_limit(filename: str) -> str:
    return (
        f"Your attachment {filename} wasn't sent to the support agent "
        "because it exceeds the 50 MB limit."
    )


def failed_to_upload(cause: Optional[str] = None) -> str:
    return f"Failed to upload your attachments: {cause or ''}".rstrip()


def callback_error(error: Exception) -> str:
    return f"An error occurred while running the callback for this command\n{error}"
