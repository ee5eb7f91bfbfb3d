import asyncio

import typer

from sentinel.config import settings
from sentinel.llm.client import OpenAIChat
from sentinel.onchain.eth import w3

app = typer.Typer()


def verify_rpc() -> tuple[int, int]:
    client = w3()
    return int(client.eth.chain_id), int(client.eth.block_number)


async def verify_llm() -> str:
    if not settings.llm_api_key:
        raise RuntimeError("LLM_API_KEY is not configured")
    return await OpenAIChat().complete("Reply with the single word: pong")


@app.command()
def rpc():
    """Verify the RPC endpoint answers"""
    try:
        chain_id, block = verify_rpc()
        typer.echo(f"✅ RPC reachable: chain_id={chain_id} block={block}")
        if settings.chain_id and chain_id != settings.chain_id:
            typer.echo(f"⚠️ Expected chain_id {settings.chain_id} for {settings.network}")
    except Exception as e:
        typer.echo(f"❌ RPC verification failed: {e}")


@app.command()
def llm():
    """Verify the LLM API key works"""
    try:
        answer = asyncio.run(verify_llm())
        typer.echo(f"✅ LLM reachable ({settings.llm_model}): {answer.strip()}")
    except Exception as e:
        typer.echo(f"❌ LLM verification failed: {e}")


if __name__ == "__main__":
    app()
