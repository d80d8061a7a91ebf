import logging

logger = logging.getLogger("OinContract")


class OinContract:
    """Read-only view of the OIN lending contract. Ratios come back as u128 strings."""
    def __init__(self, rpc, contract_id):
        self.rpc = rpc
        self.contract_id = contract_id

    async def get_user_ratio(self, account_id):
        ratio = await self.rpc.call_function(self.contract_id, "get_user_ratio", {"account": account_id})
        return int(ratio)

    async def list_liquidations(self):
        # spelled this way on-chain
        accounts = await self.rpc.call_function(self.contract_id, "list_liqutations")
        return list(accounts or [])

    async def get_liquidation_line(self):
        line = await self.rpc.call_function(self.contract_id, "get_liquidation_line")
        return int(line)

    async def get_ratio(self, account_id):
        """Account Ratio Oracle: 0 means no debt. Errors propagate to the caller."""
        return await self.get_user_ratio(account_id)
