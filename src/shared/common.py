# S3 and CloudWatch constants for NEM12 Ingester

PARSE_ERROR_LOG_GROUP = "nem12-ingester-parse-error-log"
BUCKET_NAME = "nem12-file-ingester"
INBOX_DIR = "newTBP/"
PARSE_ERR_DIR = "newParseErr/"
IRREVFILES_DIR = "newIrrevFiles/"
PROCESSED_DIR = "newP/"
AWS_REGION = "ap-southeast-2"
