"""Constants for the infrastructure manager operator."""

# API Group
API_GROUP = "infrastructuremanager.kyma-project.io"
API_GROUP_VERSION = f"{API_GROUP}/v1"

# Gardener API
GARDENER_GROUP = "core.gardener.cloud"
GARDENER_VERSION = "v1beta1"
GARDENER_API_VERSION = f"{GARDENER_GROUP}/{GARDENER_VERSION}"
GARDENER_AUTH_API_VERSION = "authentication.gardener.cloud/v1alpha1"
PLURAL_SHOOTS = "shoots"
PLURAL_SEEDS = "seeds"

# Resource Kinds
KIND_RUNTIME = "Runtime"
KIND_GARDENER_CLUSTER = "GardenerCluster"
KIND_SHOOT = "Shoot"

# Labels
LABEL_MANAGED_BY = "operator.kyma-project.io/managed-by"
LABEL_CLUSTER_NAME = "operator.kyma-project.io/cluster-name"
LABEL_SHOOT_NAME = "kyma-project.io/shoot-name"
LABEL_CREATED_BY_MIGRATOR = "operator.kyma-project.io/created-by-migrator"
LABEL_INSTANCE_ID = "kyma-project.io/instance-id"
LABEL_RUNTIME_ID = "kyma-project.io/runtime-id"
LABEL_BROKER_PLAN_ID = "kyma-project.io/broker-plan-id"
LABEL_BROKER_PLAN_NAME = "kyma-project.io/broker-plan-name"
LABEL_GLOBAL_ACCOUNT_ID = "kyma-project.io/global-account-id"
LABEL_SUBACCOUNT_ID = "kyma-project.io/subaccount-id"
LABEL_REGION = "kyma-project.io/region"
LABEL_KYMA_NAME = "operator.kyma-project.io/kyma-name"
LABEL_SHOOT_ACCOUNT = "account"
LABEL_SHOOT_SUBACCOUNT = "subaccount"

MANAGED_BY_VALUE = "infrastructure-manager"

REQUIRED_RUNTIME_LABELS = (
    LABEL_INSTANCE_ID,
    LABEL_RUNTIME_ID,
    LABEL_BROKER_PLAN_ID,
    LABEL_BROKER_PLAN_NAME,
    LABEL_GLOBAL_ACCOUNT_ID,
    LABEL_SUBACCOUNT_ID,
    LABEL_SHOOT_NAME,
    LABEL_REGION,
    LABEL_KYMA_NAME,
)

# Annotations
ANNOTATION_LAST_SYNC = "operator.kyma-project.io/last-sync"
ANNOTATION_FORCE_ROTATION = "operator.kyma-project.io/force-kubeconfig-rotation"
ANNOTATION_RUNTIME_GENERATION = f"{API_GROUP}/runtime-generation"
ANNOTATION_RUNTIME_ID = f"{API_GROUP}/runtime-id"
ANNOTATION_LICENCE_TYPE = "kcp.provisioner.kyma-project.io/licence-type"
ANNOTATION_DELETION_CONFIRMATION = "confirmation.gardener.cloud/deletion"

# Finalizers
FINALIZER = "runtime-controller.infrastructure-manager.kyma-project.io/deletion-hook"

# Field Manager
FIELD_MANAGER = "infrastructure-manager"

# Condition Types
COND_PROVISIONED = "Provisioned"
COND_DEPROVISIONED = "Deprovisioned"
COND_AUDIT_LOG_CONFIGURED = "AuditLogConfigured"
COND_KUBECONFIG_MANAGEMENT = "KubeconfigManagement"

# Condition Reasons
REASON_SHOOT_CREATION_PENDING = "ShootCreationPending"
REASON_SHOOT_UPDATE_PENDING = "ShootUpdatePending"
REASON_PROCESSING = "Processing"
REASON_PROCESSING_ERROR = "ProcessingError"
REASON_READY = "Ready"
REASON_GARDENER_ERROR = "GardenerError"
REASON_SEED_NOT_FOUND = "SeedNotFound"
REASON_AUDIT_LOG_ERROR = "AuditLogError"
REASON_AUDIT_LOG_CONFIGURED = "AuditLogConfigured"
REASON_CONVERSION_ERROR = "ConversionError"
REASON_VALIDATION_ERROR = "ValidationError"
REASON_DELETION = "Deletion"
REASON_SHOOT_DELETION_PENDING = "ShootDeletionPending"
REASON_KUBECONFIG_SECRET_CREATED = "KubeconfigSecretCreated"
REASON_KUBECONFIG_SECRET_ROTATED = "KubeconfigSecretRotated"
REASON_FAILED_TO_GET_SECRET = "FailedToGetSecret"
REASON_FAILED_TO_GET_KUBECONFIG = "FailedToGetKubeconfig"
REASON_FAILED_TO_CREATE_SECRET = "FailedToCreateSecret"
REASON_FAILED_TO_UPDATE_SECRET = "FailedToUpdateSecret"
REASON_FAILED_TO_DELETE_SECRET = "FailedToDeleteSecret"

# Resource States
STATE_PENDING = "Pending"
STATE_READY = "Ready"
STATE_FAILED = "Failed"
STATE_TERMINATING = "Terminating"
STATE_ERROR = "Error"

# Shoot last operation
LAST_OP_CREATE = "Create"
LAST_OP_STATE_PENDING = "Pending"
LAST_OP_STATE_PROCESSING = "Processing"
LAST_OP_STATE_SUCCEEDED = "Succeeded"
LAST_OP_STATE_ERROR = "Error"
LAST_OP_STATE_FAILED = "Failed"

# Shoot extensions
EXTENSION_AUDITLOG = "shoot-auditlog-service"
EXTENSION_NETWORK_FILTER = "shoot-networking-filter"
AUDITLOG_REFERENCE_NAME = "auditlog-credentials"
AUDITLOG_EXTENSION_KIND = "AuditlogConfig"
AUDITLOG_EXTENSION_API_VERSION = "service.auditlog.extensions.gardener.cloud/v1alpha1"
AUDITLOG_EXTENSION_TYPE = "standard"

# Event Reasons
EVENT_REASON_RECONCILE_STARTED = "ReconcileStarted"
EVENT_REASON_RECONCILE_FAILED = "ReconcileFailed"
EVENT_REASON_VALIDATE_FAILED = "ValidateFailed"
EVENT_REASON_SHOOT_CREATED = "ShootCreated"
EVENT_REASON_SHOOT_UPDATED = "ShootUpdated"
EVENT_REASON_SHOOT_DELETED = "ShootDeleted"
EVENT_REASON_RUNTIME_READY = "RuntimeReady"
EVENT_REASON_PROVISIONING_STOPPED = "ProvisioningStopped"
EVENT_REASON_KUBECONFIG_CREATED = "KubeconfigCreated"
EVENT_REASON_KUBECONFIG_ROTATED = "KubeconfigRotated"
