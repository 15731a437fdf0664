from warranty.models.admin_user import AdminUser, AdminRole
from warranty.models.master_data import Bauleitung, Verantwortlicher, Gewerk, Firma, MasterDataType
from warranty.models.submission import Submission, SubmissionStatus
from warranty.models.submission_file import SubmissionFile
from warranty.models.customer import Customer
from warranty.models.activity_log import ActivityLog, ActivityAction
