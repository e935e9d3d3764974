import logging
from functools import lru_cache

from fastapi import Body, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

from cardano_dao_governance.api import handlers
from cardano_dao_governance.offchain.context import ProtocolContext, default_context
from cardano_dao_governance.utils.contracts import ScriptCache

# logger setup
_LOGGER = logging.getLogger(__name__)


app = FastAPI(
    default_response_class=ORJSONResponse,
    title="Cardano DAO Governance API.",
    description="Builds unsigned transactions for DAO governance and serves the on-chain state of DAOs.",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@lru_cache(maxsize=None)
def get_context() -> ProtocolContext:
    # compiled scripts are shared by all requests of this process
    return default_context(ScriptCache())


def respond(result: dict) -> ORJSONResponse:
    status = result["error"]["status"] if "error" in result else 200
    return ORJSONResponse(result, status_code=status)


#################################################################################################
#                                          Transactions                                         #
#################################################################################################


@app.post("/api/v1/dao/create")
def dao_create(payload: dict = Body(...)):
    """
    Build the transaction creating a new DAO
    """
    return respond(handlers.handle_create_dao(get_context(), payload))


@app.post("/api/v1/dao/register")
def dao_register(payload: dict = Body(...)):
    """
    Build the transaction locking governance tokens for voting
    """
    return respond(handlers.handle_register(get_context(), payload))


@app.post("/api/v1/dao/unregister")
def dao_unregister(payload: dict = Body(...)):
    """
    Build the transaction returning locked governance tokens
    """
    return respond(handlers.handle_unregister(get_context(), payload))


@app.post("/api/v1/dao/proposal/create")
def proposal_create(payload: dict = Body(...)):
    """
    Build the transaction creating a proposal and its optional treasury action
    """
    return respond(handlers.handle_create_proposal(get_context(), payload))


@app.post("/api/v1/dao/vote/cast")
def vote_cast(payload: dict = Body(...)):
    """
    Build the transaction casting a vote on a proposal
    """
    return respond(handlers.handle_cast_vote(get_context(), payload))


@app.post("/api/v1/dao/proposal/evaluate")
def proposal_evaluate(payload: dict = Body(...)):
    """
    Build the transaction evaluating a proposal whose vote ended
    """
    return respond(handlers.handle_evaluate(get_context(), payload))


@app.post("/api/v1/dao/action/execute")
def action_execute(payload: dict = Body(...)):
    """
    Build the transaction executing the treasury action of a passed proposal
    """
    return respond(handlers.handle_execute_action(get_context(), payload))


@app.post("/api/v1/dao/deploy-script")
def dao_deploy_script(payload: dict = Body(...)):
    """
    Build the transaction publishing a validator of a DAO as reference script
    """
    return respond(handlers.handle_deploy_script(get_context(), payload))


@app.post("/api/v1/tokens/mint")
def tokens_mint(payload: dict = Body(...)):
    """
    Build the transaction minting a new CIP-68 governance token
    """
    return respond(handlers.handle_mint_token(get_context(), payload))


@app.post("/api/v1/tx/submit")
def tx_submit(payload: dict = Body(...)):
    """
    Submit a transaction signed by the wallet
    """
    return respond(handlers.handle_submit(get_context(), payload))


#################################################################################################
#                                            Queries                                            #
#################################################################################################


@app.get("/api/v1/dao/list")
def dao_list():
    """
    Get all DAOs
    """
    return respond(handlers.handle_list_daos(get_context(), {}))


@app.get("/api/v1/dao/info")
def dao_info(request: Request):
    """
    Get the parameters and script addresses of a DAO
    """
    return respond(handlers.handle_dao_info(get_context(), dict(request.query_params)))


@app.get("/api/v1/dao/proposals")
def dao_proposals(request: Request):
    """
    Get all proposals of a DAO, latest ending first
    """
    return respond(
        handlers.handle_list_proposals(get_context(), dict(request.query_params))
    )


@app.get("/api/v1/dao/proposal/details")
def proposal_details(request: Request):
    """
    Get details for a specific proposal
    """
    return respond(
        handlers.handle_proposal_details(get_context(), dict(request.query_params))
    )


@app.get("/api/v1/dao/proposals/to-evaluate")
def proposals_to_evaluate(request: Request):
    """
    Get active proposals whose vote has ended
    """
    return respond(
        handlers.handle_proposals_to_evaluate(get_context(), dict(request.query_params))
    )


@app.get("/api/v1/dao/registration")
def registration_status(request: Request):
    """
    Get the vote registration of a wallet
    """
    return respond(
        handlers.handle_registration_status(get_context(), dict(request.query_params))
    )


@app.get("/api/v1/dao/unregister/analysis")
def unregister_analysis(request: Request):
    """
    Check whether the vote of a wallet can be unregistered
    """
    return respond(
        handlers.handle_unregister_analysis(get_context(), dict(request.query_params))
    )


@app.get("/api/v1/dao/treasury")
def treasury_info(request: Request):
    """
    Get the funds in the treasury of a DAO
    """
    return respond(
        handlers.handle_treasury_info(get_context(), dict(request.query_params))
    )


@app.get("/api/v1/dao/action/details")
def action_details(request: Request):
    """
    Get an action and whether it can be executed
    """
    return respond(
        handlers.handle_action_details(get_context(), dict(request.query_params))
    )


@app.get("/api/v1/dao/deployed-scripts")
def deployed_scripts(request: Request):
    """
    Get which validators of a DAO are published as reference scripts
    """
    return respond(
        handlers.handle_deployed_scripts(get_context(), dict(request.query_params))
    )


@app.get("/api/v1/tokens/validate")
def tokens_validate(request: Request):
    """
    Check that a token exists on chain
    """
    return respond(
        handlers.handle_validate_token(get_context(), dict(request.query_params))
    )
