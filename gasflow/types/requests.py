from typing import Literal, Optional, Union

from pydantic import BaseModel, Field

from ..core.models import TransactionIntent, TransferMode, Urgency


class RouteEstimateRequest(BaseModel):
    account: str = Field(description="Address whose USDC balances pay for gas")
    to: str = Field(description="Target contract or recipient address")
    value: int = Field(default=0, ge=0, description="Native value in wei")
    data: str = Field(default="0x", description="Hex calldata")
    gas_limit: Optional[int] = Field(default=None, gt=0, description="Gas limit override")
    execute_on: Union[int, Literal["optimal"]] = Field(default="optimal", description="Execution chain id or 'optimal'")
    pay_from_chain: Union[int, Literal["auto"]] = Field(default="auto", description="Paying chain id or 'auto'")
    urgency: Urgency = Field(default=Urgency.MEDIUM, description="Gas price tier")
    transfer_mode: TransferMode = Field(default=TransferMode.AUTO, description="Bridge transfer mode")

    def to_intent(self) -> TransactionIntent:
        return TransactionIntent(
            to=self.to,
            value=self.value,
            data=self.data,
            gas_limit=self.gas_limit,
            execute_on=self.execute_on,
            pay_from_chain=self.pay_from_chain,
            urgency=self.urgency,
            transfer_mode=self.transfer_mode,
        )
