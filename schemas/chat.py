from pydantic import BaseModel, Field

from store.models import PresetAction


class NavigationButton(BaseModel):
    url: str = Field(..., description="Absolute URL or store-relative path.", example="/collections/sale")
    label: str = Field(..., description="Button text shown in the chat.", example="View Sale Collection")


class ProductCard(BaseModel):
    id: str = ""
    title: str = ""
    description: str = ""
    price: str = ""
    currency: str = "USD"
    imageUrl: str = ""
    productUrl: str = ""
    available: bool = True


class CartLineItem(BaseModel):
    id: str = ""
    title: str = ""
    quantity: int = 0
    price: str = ""


class CartData(BaseModel):
    cartId: str = ""
    checkoutUrl: str = ""
    totalAmount: str = ""
    currency: str = ""
    lineItems: list[CartLineItem] = Field(default_factory=list)


class SessionRequest(BaseModel):
    sessionId: str | None = Field(None, description="Existing widget session to resume.")
    customerEmail: str | None = Field(None, description="Known customer email.", example="a@b.com")
    customerName: str | None = Field(None, description="Known customer name.")
    pageUrl: str | None = Field(None, description="Page the widget was opened on.")


class ChatHistoryMessage(BaseModel):
    role: str
    content: str
    timestamp: int


class SessionResponse(BaseModel):
    sessionId: str
    conversationId: str
    greeting: str
    presetActions: list[PresetAction] = Field(default_factory=list)
    messages: list[ChatHistoryMessage] | None = Field(None, description="Previous messages when a session is resumed.")


class ChatRequest(BaseModel):
    conversationId: str | None = Field(None, description="Conversation returned by /chat/session.")
    sessionId: str | None = Field(None, description="Widget session, used as the rate-limit key.")
    message: str | None = Field(None, description="The user's query or input message.", example="Where is my order #1001?")
    presetActionId: str | None = Field(None, description="Preset action to run instead of a free-text message.")


class ChatResponse(BaseModel):
    response: str = Field(..., description="The assistant's reply text.")
    navigationButtons: list[NavigationButton] = Field(default_factory=list)
    productCards: list[ProductCard] = Field(default_factory=list)
    cartData: CartData | None = None
    toolsUsed: list[str] = Field(default_factory=list)
    conversationStatus: str = "active"


class ErrorResponse(BaseModel):
    error: str
