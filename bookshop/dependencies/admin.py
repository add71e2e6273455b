from fastapi import Depends, HTTPException
from bookshop.dependencies.context import RequestContext, get_request_context

def require_admin(context: RequestContext = Depends(get_request_context)) -> RequestContext:
    if not context.is_admin:
        raise HTTPException(status_code=403, detail="Admin access required")
    return context
