from pydantic import BaseModel, Field


class BillingTagStatistic(BaseModel):
    billing_tag: str
    request_count: int
    quota: int
    prompt_tokens: int
    completion_tokens: int
    request_time: int


class ModelUsageByBillingTag(BaseModel):
    billing_tag: str
    model_name: str
    request_count: int


class BillingTagStatisticsResponse(BaseModel):
    success: bool = True
    message: str = ""
    data: list[BillingTagStatistic] = Field(default_factory=list)
    model_usage: list[ModelUsageByBillingTag] = Field(default_factory=list)
