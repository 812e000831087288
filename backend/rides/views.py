import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

logger = logging.getLogger(__name__)

# ServiceResult.error_code -> HTTP status
STATUS_BY_ERROR_CODE = {
    "not_found": status.HTTP_404_NOT_FOUND,
    "policy_denied": status.HTTP_403_FORBIDDEN,
    "conflict": status.HTTP_409_CONFLICT,
    "validation_failed": status.HTTP_400_BAD_REQUEST,
    "internal_error": status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def result_status(result):
    if result.success:
        return status.HTTP_200_OK
    return STATUS_BY_ERROR_CODE.get(result.error_code, status.HTTP_400_BAD_REQUEST)


class OperationCatalogueView(APIView):
    """
    List the operations the agent layer can call (GET /api/operations/).
    """
    registry = None

    def get(self, request):
        return Response({"operations": self.registry.catalogue()})


class OperationDispatchView(APIView):
    """
    Run one marketplace operation (POST /api/operations/<name>/).

    The JSON body is validated by the operation's serializer; the result is
    returned as-is with an HTTP status derived from its error code.
    """
    registry = None

    def get(self, request, name):
        operation = self.registry.get(name)
        if operation is None:
            return Response(
                {"success": False, "error_code": "not_found", "reason": "unknown_operation",
                 "message": f"Unknown operation: {name}"},
                status=status.HTTP_404_NOT_FOUND
            )
        fields = list(operation.serializer_class().fields)
        return Response({"name": operation.name, "description": operation.description, "fields": fields})

    def post(self, request, name):
        payload = request.data if isinstance(request.data, dict) else {}
        result = self.registry.invoke(name, payload)
        http_status = result_status(result)
        if http_status >= 500:
            logger.error("Operation %s failed: %s", name, result.message)
        return Response(result.as_dict(), status=http_status)
