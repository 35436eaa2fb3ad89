import json
from typing import Optional

ERROR_STATE_TO_MESSAGE = {
    "ERROR": "The execution or matrix has stopped because it encountered an infrastructure failure.",
    "UNSUPPORTED_ENVIRONMENT": "The execution was not run because it corresponds to an unsupported environment.",
    "INCOMPATIBLE_ENVIRONMENT": "The execution was not run because the provided inputs are incompatible with "
                                "the requested environment.",
    "INCOMPATIBLE_ARCHITECTURE": "The execution was not run because the provided inputs are incompatible with "
                                 "the requested architecture.",
    "CANCELLED": "The user cancelled the execution.",
    "INVALID": "The execution or matrix was not run because the provided inputs are not valid.",
}

INVALID_MATRIX_DETAIL_TO_MESSAGE = {
    "MALFORMED_APK": "The app APK is not a valid Android application.",
    "MALFORMED_TEST_APK": "The test APK is not a valid Android instrumentation test.",
    "NO_MANIFEST": "The app APK is missing the manifest file.",
    "NO_PACKAGE_NAME": "The APK manifest file is missing the package name.",
    "INVALID_PACKAGE_NAME": "The APK application ID is invalid.",
    "TEST_SAME_AS_APP": "The test package and app package are the same.",
    "NO_INSTRUMENTATION": "The test APK does not contain an instrumentation.",
    "NO_SIGNATURE": "The app APK is not signed.",
    "INSTRUMENTATION_ORCHESTRATOR_INCOMPATIBLE": "The test runner class specified by the user or the test APK's "
                                                 "manifest file is not compatible with Android Test Orchestrator.",
    "NO_TEST_RUNNER_CLASS": "The test APK does not contain the test runner class specified by the user or the "
                            "manifest file.",
    "NO_LAUNCHER_ACTIVITY": "The app does not have a launcher activity.",
    "FORBIDDEN_PERMISSIONS": "The app declares one or more permissions that are not allowed.",
    "INVALID_ROBO_DIRECTIVES": "There is a conflict in the provided robo directives.",
    "INVALID_RESOURCE_NAME": "There is at least one invalid resource name in the provided robo directives.",
    "INVALID_DIRECTIVE_ACTION": "Invalid definition of action in the robo directives.",
    "TEST_LOOP_INTENT_FILTER_NOT_FOUND": "There is no test loop intent filter, or the one that is given is "
                                         "not formatted correctly.",
    "SCENARIO_LABEL_NOT_DECLARED": "The request contains a scenario label that was not declared in the manifest.",
    "SCENARIO_LABEL_MALFORMED": "There was an error when parsing a label's value.",
    "SCENARIO_NOT_DECLARED": "The request contains a scenario number that was not declared in the manifest.",
    "DEVICE_ADMIN_RECEIVER": "Device administrator applications are not allowed.",
    "MALFORMED_XC_TEST_ZIP": "The zipped XCTest was malformed. The zip did not contain a single .xctestrun file "
                             "and the contents of the DerivedData/Build/Products directory.",
    "BUILT_FOR_IOS_SIMULATOR": "The zipped XCTest was built for the iOS simulator rather than for a physical "
                               "device.",
    "NO_TESTS_IN_XC_TEST_ZIP": "The .xctestrun file did not specify any test targets.",
    "USE_DESTINATION_ARTIFACTS": "One or more of the test targets defined in the .xctestrun file specifies "
                                 "\"UseDestinationArtifacts\", which is disallowed.",
    "TEST_NOT_APP_HOSTED": "XC tests which run on physical devices must have \"IsAppHostedTestBundle\" == "
                           "\"true\" in the xctestrun file.",
    "PLIST_CANNOT_BE_DECODED": "An Info.plist file in the XCTest zip could not be parsed.",
    "TEST_ONLY_APK": "The APK is marked as \"testOnly\".",
    "MALFORMED_IPA": "The input IPA could not be parsed.",
    "MISSING_URL_SCHEME": "The application doesn't register the game loop URL scheme.",
    "MALFORMED_APP_BUNDLE": "The iOS application bundle (.app) couldn't be processed.",
    "NO_CODE_APK": "APK contains no code.",
    "INVALID_INPUT_APK": "Either the provided input APK path was malformed, the APK file does not exist, or "
                         "the user does not have permission to access the APK file.",
    "INVALID_APK_PREVIEW_SDK": "APK is built for a preview SDK which is unsupported.",
}


def summarize_google_error(body: Optional[str]) -> str:
    """Extract the human readable message from a Google API error body."""
    if not body:
        return "Unknown error (empty response)"
    try:
        payload = json.loads(body)
    except ValueError:
        return body
    if not isinstance(payload, dict):
        return body
    error = payload.get("error")
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    if isinstance(error, str):
        return error
    return body
